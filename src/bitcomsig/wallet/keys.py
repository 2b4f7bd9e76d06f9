# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of BitcomSig - see LICENSE
# Refs: SEC1; Base58Check; WIF; BRC-42
from __future__ import annotations
import secrets
from typing import Tuple

import base58
from cryptography.hazmat.primitives import hashes, hmac
from ecdsa import SECP256k1, SigningKey, VerifyingKey, ellipticcurve

from ..utils import config as CFG
from ..utils.helpers import hash160, sign_digest_der_low_s_strict, verify_der, sha256, SECP256K1_N


class AddressError(ValueError):
    pass


# -----------------------------
# Addresses
# -----------------------------

def pkh_to_address(pkh: bytes, version: int = None) -> str:
    if len(pkh) != CFG.PKH_LEN:
        raise AddressError("pubkey hash must be 20 bytes")
    ver = CFG.ADDRESS_VERSION if version is None else int(version)
    return base58.b58encode_check(bytes([ver]) + bytes(pkh)).decode("ascii")

def decode_address(address: str) -> Tuple[int, bytes]:
    try:
        raw = base58.b58decode_check(address.strip())
    except ValueError as e:
        raise AddressError(f"Invalid base58check address: {e}") from e
    if len(raw) != 1 + CFG.PKH_LEN:
        raise AddressError(f"Invalid address payload length: {len(raw)} (expected 21)")
    return raw[0], raw[1:]

def address_to_pkh(address: str) -> bytes:
    return decode_address(address)[1]

def is_valid_address(address: str) -> bool:
    try:
        decode_address(address)
        return True
    except (AddressError, AttributeError):
        return False


def _to_affine(point):
    if isinstance(point, ellipticcurve.PointJacobi):
        return point.to_affine()
    return point


# -----------------------------
# Keys
# -----------------------------

class PublicKey:
    def __init__(self, vk: VerifyingKey):
        self.vk = vk

    @classmethod
    def from_bytes(cls, sec: bytes) -> "PublicKey":
        return cls(VerifyingKey.from_string(bytes(sec), curve=SECP256k1))

    @classmethod
    def from_hex(cls, hex_str: str) -> "PublicKey":
        return cls.from_bytes(bytes.fromhex(hex_str))

    @classmethod
    def from_point(cls, point) -> "PublicKey":
        return cls(VerifyingKey.from_public_point(_to_affine(point), curve=SECP256k1))

    @property
    def point(self):
        return self.vk.pubkey.point

    def encode(self, compressed: bool = True) -> bytes:
        return self.vk.to_string("compressed" if compressed else "uncompressed")

    def to_hex(self, compressed: bool = True) -> str:
        return self.encode(compressed).hex()

    def to_hash160(self, compressed: bool = True) -> bytes:
        return hash160(self.encode(compressed))

    def to_address(self, compressed: bool = True, version: int = None) -> str:
        return pkh_to_address(self.to_hash160(compressed), version)

    def verify(self, message: bytes, der_sig: bytes) -> bool:
        """ECDSA check of a DER signature over sha256(message)."""
        return verify_der(self.vk, sha256(message), der_sig)

    def derive_shared_secret(self, private_key: "PrivateKey") -> "PublicKey":
        return PublicKey.from_point(self.point * private_key.secret)

    def derive_child(self, private_key: "PrivateKey", invoice_number: str) -> "PublicKey":
        """BRC-42 child public key, the counterpart of :meth:`PrivateKey.derive_child`."""
        shared = self.derive_shared_secret(private_key)
        tweak = _invoice_hmac(shared, invoice_number)
        return PublicKey.from_point(self.point + SECP256k1.generator * tweak)

    def __eq__(self, other):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.encode(True) == other.encode(True)

    def __hash__(self):
        return hash(self.encode(True))

    def __repr__(self):
        return f"<PublicKey {self.to_hex()}>"


class PrivateKey:
    def __init__(self, sk: SigningKey):
        self.sk = sk

    @classmethod
    def from_int(cls, secret: int) -> "PrivateKey":
        if not (1 <= secret < SECP256K1_N):
            raise ValueError("private key out of range")
        return cls(SigningKey.from_secret_exponent(secret, curve=SECP256k1))

    @classmethod
    def from_bytes(cls, b: bytes) -> "PrivateKey":
        if len(b) != 32:
            raise ValueError("private key must be 32 bytes")
        return cls.from_int(int.from_bytes(b, "big"))

    @classmethod
    def from_hex(cls, hex_str: str) -> "PrivateKey":
        return cls.from_bytes(bytes.fromhex(hex_str))

    @classmethod
    def from_random(cls) -> "PrivateKey":
        return cls.from_int(secrets.randbelow(SECP256K1_N - 1) + 1)

    @classmethod
    def from_wif(cls, wif: str) -> "PrivateKey":
        raw = base58.b58decode_check(wif.strip())
        if raw[0] not in (CFG.WIF_VERSION_MAIN, CFG.WIF_VERSION_TEST):
            raise ValueError("Unknown WIF version byte")
        body = raw[1:]
        if len(body) == 33 and body[-1] == 0x01:
            body = body[:-1]
        return cls.from_bytes(body)

    def to_wif(self, compressed: bool = True, version: int = None) -> str:
        ver = CFG.WIF_VERSION if version is None else int(version)
        payload = bytes([ver]) + self.to_bytes() + (b"\x01" if compressed else b"")
        return base58.b58encode_check(payload).decode("ascii")

    @property
    def secret(self) -> int:
        return self.sk.privkey.secret_multiplier

    def to_bytes(self) -> bytes:
        return self.sk.to_string()

    def public_key(self) -> PublicKey:
        return PublicKey(self.sk.get_verifying_key())

    def to_address(self, compressed: bool = True, version: int = None) -> str:
        return self.public_key().to_address(compressed, version)

    def sign(self, message: bytes) -> bytes:
        """Deterministic low-S DER signature over sha256(message)."""
        return sign_digest_der_low_s_strict(self.sk, sha256(message))

    def sign_digest(self, digest32: bytes) -> bytes:
        return sign_digest_der_low_s_strict(self.sk, digest32)

    def derive_shared_secret(self, public_key: PublicKey) -> PublicKey:
        return PublicKey.from_point(public_key.point * self.secret)

    def derive_child(self, public_key: PublicKey, invoice_number: str) -> "PrivateKey":
        """BRC-42: child = (self + HMAC(shared_secret, invoice)) mod n."""
        shared = self.derive_shared_secret(public_key)
        tweak = _invoice_hmac(shared, invoice_number)
        return PrivateKey.from_int((self.secret + tweak) % SECP256K1_N)

    def __repr__(self):
        return f"<PrivateKey {self.to_address()}>"


def _invoice_hmac(shared: PublicKey, invoice_number: str) -> int:
    h = hmac.HMAC(shared.encode(True), hashes.SHA256())
    h.update(invoice_number.encode("utf-8"))
    mac = h.finalize()
    return int.from_bytes(mac, "big")


__all__ = [
    "AddressError",
    "PublicKey",
    "PrivateKey",
    "pkh_to_address",
    "decode_address",
    "address_to_pkh",
    "is_valid_address",
]
