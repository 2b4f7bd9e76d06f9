# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of BitcomSig - see LICENSE
# Refs: BIP62-MinimalData; CScriptNum
"""Minimal script-number codec.

Integers are pushed the way the script interpreter reads them back:
OP_0 for zero, OP_1..OP_16 and OP_1NEGATE for the small constants, and
otherwise a little-endian sign-magnitude payload where the top bit of the
last byte carries the sign.
"""
from __future__ import annotations
from typing import List, Union

from ..utils.helpers import OP_0, OP_1, OP_16, OP_1NEGATE, OP_PUSHDATA1, OP_PUSHDATA2, OP_PUSHDATA4

Cmd = Union[int, bytes]


def num_to_bytes(n: int) -> bytes:
    """Sign-magnitude little-endian payload for ``n`` (empty for zero)."""
    if n == 0:
        return b""
    negative = n < 0
    mag = -n if negative else n
    out = bytearray()
    while mag > 0:
        out.append(mag & 0xff)
        mag >>= 8
    if out[-1] & 0x80:
        out.append(0x80 if negative else 0x00)
    elif negative:
        out[-1] |= 0x80
    return bytes(out)


def bytes_to_num(b: bytes) -> int:
    if not b:
        return 0
    result = int.from_bytes(b, "little")
    top_bit = 0x80 << (8 * (len(b) - 1))
    if result & top_bit:
        return -(result & ~top_bit)
    return result


def encode_script_number(n: int) -> List[Cmd]:
    """Script commands pushing ``n`` in canonical minimal form."""
    n = int(n)
    if n == 0:
        return [OP_0]
    if 1 <= n <= 16:
        return [OP_1 + n - 1]
    if n == -1:
        return [OP_1NEGATE]
    return [num_to_bytes(n)]


def decode_script_number(raw: bytes) -> int:
    """Inverse of :func:`encode_script_number` over serialized script bytes."""
    raw = bytes(raw)
    if not raw:
        return 0
    op = raw[0]
    if op == OP_0:
        return 0
    if OP_1 <= op <= OP_16:
        return op - (OP_1 - 1)
    if op == OP_1NEGATE:
        return -1
    i = 1
    if op == OP_PUSHDATA1:
        ln, i = raw[1], 2
    elif op == OP_PUSHDATA2:
        ln, i = int.from_bytes(raw[1:3], "little"), 3
    elif op == OP_PUSHDATA4:
        ln, i = int.from_bytes(raw[1:5], "little"), 5
    elif op <= 0x4b:
        ln = op
    else:
        raise ValueError(f"not a number push: opcode 0x{op:02x}")
    data = raw[i:i + ln]
    if len(data) != ln:
        raise ValueError("script short read (number payload)")
    return bytes_to_num(data)


__all__ = ["num_to_bytes", "bytes_to_num", "encode_script_number", "decode_script_number"]
