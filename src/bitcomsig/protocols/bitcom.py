# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of BitcomSig - see LICENSE
# Refs: BitCom
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional

from ..utils import config as CFG
from ..utils.helpers import Script, OP_RETURN, parse_chunks, push_data, to_bytes
from ..utils.sig_logging import get_ctx_logger

log = get_ctx_logger("bitcomsig.protocols.bitcom")


@dataclass(frozen=True)
class ProtocolSegment:
    protocol: str
    script: bytes
    pos: int = 0

    def fields(self) -> List[bytes]:
        """Sub-field payloads of this segment. Raises ValueError on a truncated push."""
        return Script.deserialize(self.script).pushes()


@dataclass
class BitComDecoded:
    lock_script: bytes = b""
    protocols: List[ProtocolSegment] = field(default_factory=list)


def decimal_field(raw: bytes) -> int:
    """Non-negative integer written as ASCII digits 0-9."""
    text = bytes(raw).decode("ascii")
    if not text.isdigit():
        raise ValueError(f"not a decimal field: {text!r}")
    return int(text, 10)


def _is_pipe(chunk) -> bool:
    return chunk.data == CFG.PIPE


class BitCom:
    def __init__(self, protocols: List[ProtocolSegment] = None, lock_script: bytes = b""):
        self.protocols = list(protocols or [])
        self.lock_script = to_bytes(lock_script)

    @staticmethod
    def decode(script) -> Optional[BitComDecoded]:
        raw = to_bytes(script)
        chunks = parse_chunks(raw, strict=False)
        if chunks and chunks[-1].end < len(raw):
            log.debug("[decode] truncated push at offset %d, ignoring the tail", chunks[-1].end)

        ret_idx = next((k for k, c in enumerate(chunks) if c.op == OP_RETURN and c.data is None), None)
        if ret_idx is None:
            return None

        decoded = BitComDecoded(lock_script=raw[:chunks[ret_idx].pos])
        k = ret_idx + 1
        seg_start = chunks[k].pos if k < len(chunks) else len(raw)
        while k < len(chunks):
            prefix_chunk = chunks[k]
            k += 1
            body_start = prefix_chunk.end
            while k < len(chunks) and not _is_pipe(chunks[k]):
                k += 1
            body_end = chunks[k].pos if k < len(chunks) else chunks[k - 1].end
            label = (prefix_chunk.data or b"").decode("utf-8", "replace")
            decoded.protocols.append(ProtocolSegment(label, raw[body_start:body_end], seg_start))
            log.trace("[decode] segment %s at %d (%d bytes)", label, seg_start, body_end - body_start)
            if k < len(chunks):
                seg_start = chunks[k].pos  # the pipe opens the next segment
                k += 1
        return decoded

    def lock(self) -> Script:
        out = bytearray(self.lock_script)
        out.append(OP_RETURN)
        for i, proto in enumerate(self.protocols):
            if i > 0:
                out += push_data(CFG.PIPE)
            out += push_data(proto.protocol.encode("utf-8"))
            out += proto.script
        return Script.deserialize(bytes(out))


def segments_for(script, label: str) -> List[tuple]:
    """(bitcom index, segment) pairs labelled ``label``; empty when the script carries no BitCom data."""
    decoded = BitCom.decode(script)
    if decoded is None:
        return []
    return [(i, seg) for i, seg in enumerate(decoded.protocols) if seg.protocol == label]


__all__ = ["ProtocolSegment", "BitComDecoded", "BitCom", "segments_for", "decimal_field"]
