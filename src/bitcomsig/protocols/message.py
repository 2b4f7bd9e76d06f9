# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of BitcomSig - see LICENSE
# Refs: SIGMA; AIP
"""Construction of the exact bytes that get signed.

Two layouts exist and they are never interchangeable:

* anchored (SIGMA): ``sha256(txid || vout_le32) || sha256(script bytes before the segment)``
* flat (AIP): ``OP_RETURN || prefix || push(field)... || "|"``

Signer and verifier must both go through these functions; a single differing
byte only ever surfaces as an invalid signature.
"""
from __future__ import annotations
from typing import Iterable, Sequence

from ..utils import config as CFG
from ..utils.helpers import OP_RETURN, push_data, sha256


def outpoint_bytes(txid: str, vout: int) -> bytes:
    raw = bytes.fromhex(txid)
    if len(raw) != 32:
        raise ValueError("txid must be 32 bytes")
    return raw + int(vout).to_bytes(4, "little")

def input_hash(txid: str, vout: int) -> bytes:
    return sha256(outpoint_bytes(txid, vout))

def data_hash(preceding_script: bytes) -> bytes:
    return sha256(bytes(preceding_script))

def build_anchored_message(in_hash: bytes, dat_hash: bytes) -> bytes:
    if len(in_hash) != 32 or len(dat_hash) != 32:
        raise ValueError("input and data hashes must be 32 bytes each")
    return bytes(in_hash) + bytes(dat_hash)


def _flat_body(prefix: str, chunks: Iterable[bytes]) -> bytes:
    return prefix.encode("utf-8") + b"".join(push_data(bytes(c)) for c in chunks) + CFG.PIPE

def build_flat_message(prefix: str, chunks: Sequence[bytes]) -> bytes:
    return bytes([OP_RETURN]) + _flat_body(prefix, chunks)

def build_flat_message_from_segments(segments) -> bytes:
    """Flat message over several segments: each contributes ``prefix || pushes || "|"``."""
    out = bytearray([OP_RETURN])
    for seg in segments:
        out += _flat_body(seg.protocol, seg.fields())
    return bytes(out)


__all__ = [
    "outpoint_bytes",
    "input_hash",
    "data_hash",
    "build_anchored_message",
    "build_flat_message",
    "build_flat_message_from_segments",
]
