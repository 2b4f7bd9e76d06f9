# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of BitcomSig - see LICENSE
# Refs: BRC-42; BRC-77
"""BRC-77 signed messages.

Wire layout::

    version(4) || sender_pub(33) || recipient(1 = 0x00 for anyone, or 33) || key_id(32) || DER(sig)

The signature is made with the BRC-42 child of the sender's key for the
invoice ``"2-message signing-" + base64(key_id)``, so it can be checked
directly against the embedded sender key without any recovery search.
"""
from __future__ import annotations
import base64, secrets
from typing import Optional

from ..utils import config as CFG
from .keys import PrivateKey, PublicKey


class SignedMessageError(ValueError):
    pass


def _anyone() -> PrivateKey:
    return PrivateKey.from_int(CFG.BRC77_ANYONE_SECRET)

def _invoice_number(key_id: bytes) -> str:
    return CFG.BRC77_INVOICE_PREFIX + base64.b64encode(key_id).decode("ascii")


def sign(message: bytes, signer: PrivateKey, verifier: Optional[PublicKey] = None,
         key_id: Optional[bytes] = None) -> bytes:
    recipient_anyone = verifier is None
    if recipient_anyone:
        verifier = _anyone().public_key()
    if key_id is None:
        key_id = secrets.token_bytes(CFG.BRC77_KEY_ID_LEN)
    if len(key_id) != CFG.BRC77_KEY_ID_LEN:
        raise SignedMessageError("key_id must be 32 bytes")

    signing_key = signer.derive_child(verifier, _invoice_number(key_id))
    signature = signing_key.sign(bytes(message))
    recipient = b"\x00" if recipient_anyone else verifier.encode(True)
    return CFG.BRC77_VERSION + signer.public_key().encode(True) + recipient + key_id + signature


def verify(message: bytes, sig: bytes, recipient: Optional[PrivateKey] = None) -> bool:
    sig = bytes(sig)
    i = len(CFG.BRC77_VERSION)
    version = sig[:i]
    if version != CFG.BRC77_VERSION:
        raise SignedMessageError(
            f"Message version mismatch: Expected {CFG.BRC77_VERSION.hex()}, received {version.hex()}")

    sender_raw = sig[i:i + 33]; i += 33
    try:
        sender = PublicKey.from_bytes(sender_raw)
    except Exception as e:
        raise SignedMessageError(f"Invalid sender public key: {e}") from e

    if i >= len(sig):
        raise SignedMessageError("Signed message truncated before recipient")
    if sig[i] == 0x00:
        i += 1
        recipient = _anyone()
    else:
        verifier_der = sig[i:i + 33]; i += 33
        if recipient is None:
            raise SignedMessageError(
                "This signature can only be verified with knowledge of a specific private key. "
                f"The associated public key is: {verifier_der.hex()}")
        actual = recipient.public_key().encode(True)
        if actual != verifier_der:
            raise SignedMessageError(
                f"The recipient public key is {actual.hex()} but the signature requires "
                f"the recipient to have public key {verifier_der.hex()}")

    key_id = sig[i:i + CFG.BRC77_KEY_ID_LEN]; i += CFG.BRC77_KEY_ID_LEN
    if len(key_id) != CFG.BRC77_KEY_ID_LEN or i >= len(sig):
        raise SignedMessageError("Signed message truncated before signature")
    signature_der = sig[i:]

    signing_key = sender.derive_child(recipient, _invoice_number(key_id))
    return signing_key.verify(bytes(message), signature_der)


__all__ = ["SignedMessageError", "sign", "verify"]
