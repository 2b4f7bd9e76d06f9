# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of BitcomSig - see LICENSE
# Refs: AIP; BSM
"""Author Identity Protocol (AIP) segments.

Segment layout (after the AIP label): algorithm, address, base64 signature,
then optional decimal field indices. The signature covers the flat message
built from every segment in front of the AIP one.
"""
from __future__ import annotations
import base64
from dataclasses import dataclass, field
from typing import List, Optional

from ..utils import config as CFG
from ..utils.helpers import Script, push_data, to_bytes
from ..utils.sig_logging import get_ctx_logger
from ..wallet import bsm
from ..wallet.keys import PrivateKey
from .bitcom import BitCom, BitComDecoded, ProtocolSegment, decimal_field
from .message import build_flat_message_from_segments

log = get_ctx_logger("bitcomsig.protocols.aip", protocol="AIP")


@dataclass
class AipData:
    address: str
    signature: bytes
    algorithm: str = CFG.AIP_ALGORITHM
    indices: List[int] = field(default_factory=list)
    valid: Optional[bool] = None
    bitcom_index: Optional[int] = None


def _decode_segment(index: int, segment: ProtocolSegment) -> Optional["Aip"]:
    try:
        fields = segment.fields()
        if len(fields) < CFG.AIP_MIN_FIELDS:
            log.debug("[decode] segment %d has %d fields, need %d", index, len(fields), CFG.AIP_MIN_FIELDS,
                      extra={"segment": index})
            return None
        algorithm = fields[0].decode("utf-8")
        address = fields[1].decode("utf-8")
        signature = base64.b64decode(fields[2], validate=True)
        indices = [decimal_field(f) for f in fields[3:]]
    except ValueError as e:
        log.debug("[decode] segment %d rejected: %s", index, e, extra={"segment": index})
        return None
    if algorithm != CFG.AIP_ALGORITHM:
        log.debug("[decode] segment %d uses unsupported algorithm %s", index, algorithm, extra={"segment": index})
        return None
    return Aip(AipData(address=address, signature=signature, algorithm=algorithm,
                       indices=indices, valid=None, bitcom_index=index))


class Aip:
    def __init__(self, data: AipData):
        self.data = data

    @staticmethod
    def decode(bitcom: BitComDecoded) -> List["Aip"]:
        if bitcom is None or not bitcom.protocols:
            return []
        found = (_decode_segment(i, seg) for i, seg in enumerate(bitcom.protocols) if seg.protocol == CFG.AIP_PREFIX)
        return [a for a in found if a is not None]

    @staticmethod
    def decode_from_script(script) -> List["Aip"]:
        return Aip.decode(BitCom.decode(script))

    @staticmethod
    def verify_script(script) -> List["Aip"]:
        """Decode every AIP segment and verify it against the segments in front of it."""
        bitcom = BitCom.decode(script)
        records = Aip.decode(bitcom)
        for rec in records:
            preceding = bitcom.protocols[:rec.data.bitcom_index]
            try:
                message = build_flat_message_from_segments(preceding)
            except ValueError as e:
                log.debug("[verify_script] preceding data unreadable: %s", e, extra={"segment": rec.data.bitcom_index})
                rec.data.valid = False
                continue
            rec.verify(message)
        return records

    @classmethod
    def sign(cls, message: bytes, private_key: PrivateKey) -> "Aip":
        signature = bsm.sign(bytes(message), private_key, compressed=True)
        return cls(AipData(address=private_key.to_address(), signature=signature, valid=True))

    def verify(self, message: bytes) -> bool:
        ctx = {"segment": self.data.bitcom_index}
        if self.data.indices:
            log.debug("[verify] field-index signing (%s) is not supported", self.data.indices, extra=ctx)
            self.data.valid = False
            return False
        self.data.valid = bsm.verify(bytes(message), self.data.signature, self.data.address)
        if not self.data.valid:
            log.debug("[verify] no recovery candidate matches %s", self.data.address, extra=ctx)
        return self.data.valid

    def segment(self) -> ProtocolSegment:
        cmds = [
            self.data.algorithm.encode("utf-8"),
            self.data.address.encode("utf-8"),
            base64.b64encode(self.data.signature),
        ] + [str(i).encode("utf-8") for i in self.data.indices]
        return ProtocolSegment(CFG.AIP_PREFIX, Script(cmds).serialize(), 0)

    def __repr__(self):
        return f"<Aip {self.data.address} valid={self.data.valid}>"


def sign_script(script, private_key: PrivateKey) -> Script:
    """Append an AIP segment signing every BitCom segment already in ``script``."""
    raw = to_bytes(script)
    bitcom = BitCom.decode(raw)
    if bitcom is None or not bitcom.protocols:
        raise ValueError("script carries no BitCom data to sign")
    aip = Aip.sign(build_flat_message_from_segments(bitcom.protocols), private_key)
    seg = aip.segment()
    out = raw + push_data(CFG.PIPE) + push_data(seg.protocol.encode("utf-8")) + seg.script
    log.info("[sign_script] AIP signature by %s over %d segment(s)", aip.data.address, len(bitcom.protocols))
    return Script.deserialize(out)


__all__ = ["AipData", "Aip", "sign_script"]
