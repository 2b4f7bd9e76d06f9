# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of BitcomSig - see LICENSE
# Refs: BSM; BIP137; SEC1-4.1.6
"""Bitcoin Signed Message (legacy) primitives.

A compact signature is ``header || r || s`` where the header nominally encodes
the recovery id and whether the signer's key is compressed. Implementations
disagree on how that header maps to recovery candidates, so verification here
never trusts it and instead tries every candidate in
``CFG.RECOVERY_CANDIDATES``.
"""
from __future__ import annotations
from typing import Optional, Tuple

from ecdsa import SECP256k1, ellipticcurve
from ecdsa.numbertheory import inverse_mod

from ..utils import config as CFG
from ..utils.helpers import encode_varint, hash256, sign_digest_rs_low_s, verify_digest_rs, SECP256K1_N, SECP256K1_P
from ..utils.sig_logging import get_ctx_logger
from .keys import PrivateKey, PublicKey

log = get_ctx_logger("bitcomsig.wallet.bsm")


def magic_hash(message: bytes) -> bytes:
    buf = encode_varint(len(CFG.BSM_MAGIC)) + CFG.BSM_MAGIC + encode_varint(len(message)) + bytes(message)
    return hash256(buf)


# -----------------------------
# Compact signatures
# -----------------------------

def split_compact(sig: bytes) -> Tuple[int, int, int]:
    """Return (header, r, s) of a 65-byte compact signature."""
    if len(sig) != CFG.COMPACT_SIG_LEN:
        raise ValueError(f"compact signature must be {CFG.COMPACT_SIG_LEN} bytes, got {len(sig)}")
    return sig[0], int.from_bytes(sig[1:33], "big"), int.from_bytes(sig[33:65], "big")

def to_compact(r: int, s: int, recovery_id: int, compressed: bool = True) -> bytes:
    header = CFG.COMPACT_HEADER_BASE + recovery_id + (CFG.COMPACT_COMPRESSED if compressed else 0)
    return bytes([header]) + r.to_bytes(32, "big") + s.to_bytes(32, "big")

# -----------------------------
# Recovery
# -----------------------------

def recover_public_key(r: int, s: int, digest: bytes, recovery_id: int) -> Optional[PublicKey]:
    """Candidate public key for (r, s) over ``digest``, or None when the candidate does not exist."""
    n = SECP256K1_N
    p = SECP256K1_P
    if not (1 <= r < n) or not (1 <= s < n) or recovery_id not in CFG.RECOVERY_CANDIDATES:
        return None
    x = r + (recovery_id // 2) * n
    if x >= p:
        return None
    alpha = (pow(x, 3, p) + 7) % p
    beta = pow(alpha, (p + 1) // 4, p)
    if (beta * beta) % p != alpha:
        return None
    y = beta if (beta - recovery_id) % 2 == 0 else p - beta

    curve = SECP256k1.curve
    R = ellipticcurve.PointJacobi(curve, x, y, 1, n)
    e = int.from_bytes(digest, "big")
    Q = (R * s + SECP256k1.generator * ((-e) % n)) * inverse_mod(r, n)
    if Q == ellipticcurve.INFINITY:
        return None
    return PublicKey.from_point(Q)

def calculate_recovery_factor(r: int, s: int, digest: bytes, public_key: PublicKey) -> int:
    for rid in CFG.RECOVERY_CANDIDATES:
        candidate = recover_public_key(r, s, digest, rid)
        if candidate is not None and candidate == public_key:
            return rid
    raise ValueError("Unable to find valid recovery factor")

def _candidate_matches(r: int, s: int, digest: bytes, recovery_id: int, addresses: Tuple[str, ...]) -> bool:
    pub = recover_public_key(r, s, digest, recovery_id)
    if pub is None:
        log.trace("[find_recovery_id] candidate %d: no point", recovery_id)
        return False
    if not verify_digest_rs(pub.vk, digest, r, s):
        log.trace("[find_recovery_id] candidate %d: signature check failed", recovery_id)
        return False
    matched = pub.to_address(True) in addresses or pub.to_address(False) in addresses
    log.trace("[find_recovery_id] candidate %d: address match=%s", recovery_id, matched)
    return matched

def find_recovery_id(signature: bytes, message: bytes, address: str) -> Optional[int]:
    """First recovery candidate whose key verifies ``signature`` and hashes to ``address``.

    The header byte is ignored; both the compressed and the uncompressed
    address of each recovered key are accepted.
    """
    try:
        _, r, s = split_compact(bytes(signature))
    except ValueError as e:
        log.debug("[find_recovery_id] %s", e)
        return None
    digest = magic_hash(message)
    addresses = (address,)
    return next((rid for rid in CFG.RECOVERY_CANDIDATES if _candidate_matches(r, s, digest, rid, addresses)), None)


# -----------------------------
# Sign / verify
# -----------------------------

def sign(message: bytes, private_key: PrivateKey, compressed: bool = True) -> bytes:
    digest = magic_hash(message)
    r, s = sign_digest_rs_low_s(private_key.sk, digest)
    rid = calculate_recovery_factor(r, s, digest, private_key.public_key())
    return to_compact(r, s, rid, compressed)

def verify(message: bytes, signature: bytes, address: str) -> bool:
    return find_recovery_id(signature, message, address) is not None


__all__ = [
    "magic_hash",
    "split_compact",
    "to_compact",
    "recover_public_key",
    "calculate_recovery_factor",
    "find_recovery_id",
    "sign",
    "verify",
]
