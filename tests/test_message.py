# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of BitcomSig - see LICENSE
# Refs: SIGMA; AIP

import hashlib
import os
import sys

import pytest

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(PROJECT_ROOT, "src")
for path in (PROJECT_ROOT, SRC_ROOT):
    if path not in sys.path:
        sys.path.append(path)

from bitcomsig.protocols.bitcom import ProtocolSegment  # noqa: E402
from bitcomsig.protocols.message import (  # noqa: E402
    build_anchored_message,
    build_flat_message,
    build_flat_message_from_segments,
    data_hash,
    input_hash,
    outpoint_bytes,
)
from bitcomsig.utils.helpers import Script  # noqa: E402

TXID = "00" * 31 + "01"


def test_outpoint_keeps_display_order():
    assert outpoint_bytes(TXID, 1) == bytes(31) + b"\x01" + b"\x01\x00\x00\x00"


def test_input_hash_is_sha256_of_outpoint():
    assert input_hash(TXID, 7) == hashlib.sha256(outpoint_bytes(TXID, 7)).digest()


def test_outpoint_rejects_short_txid():
    with pytest.raises(ValueError):
        outpoint_bytes("abcd", 0)


def test_anchored_message_is_64_bytes():
    msg = build_anchored_message(input_hash(TXID, 0), data_hash(b"\x6a"))
    assert len(msg) == 64
    assert msg[32:] == hashlib.sha256(b"\x6a").digest()


def test_anchored_message_rejects_bad_lengths():
    with pytest.raises(ValueError):
        build_anchored_message(b"\x00" * 31, b"\x00" * 32)


def test_flat_message_layout():
    assert build_flat_message("1abc", [b"a", b""]) == b"\x6a1abc\x01a\x00|"


def test_flat_message_from_segments_concatenates():
    segs = [
        ProtocolSegment("A", Script([b"x"]).serialize()),
        ProtocolSegment("B", Script([b"y", b"z"]).serialize()),
    ]
    assert build_flat_message_from_segments(segs) == b"\x6aA\x01x|B\x01y\x01z|"
