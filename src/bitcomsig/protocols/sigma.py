# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of BitcomSig - see LICENSE
# Refs: SIGMA; BSM; BRC-77
"""SIGMA: address-anchored signatures carried in a BitCom segment.

The signed message binds a spend (the outpoint of input ``vin``) to the output
script data in front of the SIGMA segment:

    message = sha256(txid || vout) || sha256(script bytes before the segment)

Segment layout (after the ``SIGMA`` label): algorithm, address, signature, vin.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..core.tx import Tx, TxOut
from ..utils import config as CFG
from ..utils.helpers import Script, OP_RETURN, push_data, to_bytes
from ..utils.sig_logging import get_ctx_logger
from ..wallet import bsm, signed_message
from ..wallet.keys import PrivateKey, PublicKey
from .bitcom import BitCom, BitComDecoded, ProtocolSegment, decimal_field, segments_for
from .message import build_anchored_message, data_hash, input_hash

log = get_ctx_logger("bitcomsig.protocols.sigma", protocol=CFG.SIGMA_PREFIX)


class Algorithm(str, Enum):
    BSM = "BSM"
    BRC77 = "BRC77"


@dataclass
class SigmaData:
    algorithm: Algorithm
    address: str
    signature: bytes
    vin: int = 0
    valid: Optional[bool] = None
    bitcom_index: Optional[int] = None


def _decode_segment(index: int, segment: ProtocolSegment) -> Optional["Sigma"]:
    try:
        fields = segment.fields()
    except ValueError as e:
        log.debug("[decode] segment %d unreadable: %s", index, e, extra={"segment": index})
        return None
    if len(fields) < CFG.SIGMA_MIN_FIELDS:
        log.debug("[decode] segment %d has %d fields, need %d", index, len(fields), CFG.SIGMA_MIN_FIELDS,
                  extra={"segment": index})
        return None
    try:
        algorithm = Algorithm(fields[0].decode("utf-8"))
        address = fields[1].decode("utf-8")
        vin = decimal_field(fields[3])
    except ValueError as e:
        log.debug("[decode] segment %d rejected: %s", index, e, extra={"segment": index})
        return None
    return Sigma(SigmaData(algorithm=algorithm, address=address, signature=bytes(fields[2]),
                           vin=vin, valid=None, bitcom_index=index))


def split_for_append(raw: bytes) -> tuple:
    """(bytes a new trailing segment attests to, separator written in front of it)."""
    decoded = BitCom.decode(raw)
    if decoded is None:
        return raw + bytes([OP_RETURN]), b""
    if not decoded.protocols:
        return raw, b""
    return raw, push_data(CFG.PIPE)


class Sigma:
    def __init__(self, data: SigmaData):
        self.data = data

    # -------- Decode ----------

    @staticmethod
    def decode(bitcom: BitComDecoded) -> List["Sigma"]:
        if bitcom is None or not bitcom.protocols:
            return []
        found = (_decode_segment(i, seg) for i, seg in enumerate(bitcom.protocols) if seg.protocol == CFG.SIGMA_PREFIX)
        return [s for s in found if s is not None]

    @staticmethod
    def decode_from_script(script) -> List["Sigma"]:
        return Sigma.decode(BitCom.decode(script))

    # -------- Sign ----------

    @classmethod
    def sign(cls, in_hash: bytes, dat_hash: bytes, private_key: PrivateKey,
             algorithm: Algorithm = Algorithm.BSM, vin: int = 0,
             verifier: Optional[PublicKey] = None) -> "Sigma":
        algorithm = Algorithm(algorithm)
        message = build_anchored_message(in_hash, dat_hash)

        if algorithm is Algorithm.BRC77:
            signature = signed_message.sign(message, private_key, verifier)
        else:
            signature = bsm.sign(message, private_key, compressed=True)

        log.debug("[sign] %s signature by %s over vin %d", algorithm.value, private_key.to_address(), vin,
                  extra={"vin": vin})
        return cls(SigmaData(algorithm=algorithm, address=private_key.to_address(),
                             signature=signature, vin=int(vin), valid=True))

    # -------- Verify ----------

    def verify_with_hashes(self, in_hash: bytes, dat_hash: bytes,
                           recipient_private_key: Optional[PrivateKey] = None) -> bool:
        ctx = {"vin": self.data.vin, "segment": self.data.bitcom_index}
        try:
            message = build_anchored_message(in_hash, dat_hash)
        except ValueError as e:
            log.debug("[verify_with_hashes] %s", e, extra=ctx)
            self.data.valid = False
            return False

        if self.data.algorithm is Algorithm.BRC77:
            try:
                self.data.valid = bool(signed_message.verify(message, self.data.signature, recipient_private_key))
            except signed_message.SignedMessageError as e:
                log.debug("[verify_with_hashes] BRC77 rejected: %s", e, extra=ctx)
                self.data.valid = False
            return self.data.valid

        rid = bsm.find_recovery_id(self.data.signature, message, self.data.address)
        self.data.valid = rid is not None
        if rid is None:
            log.debug("[verify_with_hashes] no recovery candidate matches %s", self.data.address, extra=ctx)
        else:
            log.trace("[verify_with_hashes] matched recovery id %d", rid, extra=ctx)
        return self.data.valid

    def verify(self) -> bool:
        return self.data.valid is True

    # -------- Script building ----------

    def segment(self) -> ProtocolSegment:
        body = Script([
            self.data.algorithm.value.encode("utf-8"),
            self.data.address.encode("utf-8"),
            bytes(self.data.signature),
            str(self.data.vin).encode("utf-8"),
        ]).serialize()
        return ProtocolSegment(CFG.SIGMA_PREFIX, body, 0)

    def segment_bytes(self) -> bytes:
        seg = self.segment()
        return push_data(seg.protocol.encode("utf-8")) + seg.script

    def lock(self) -> Script:
        return BitCom([self.segment()]).lock()

    def append_to(self, script) -> Script:
        preceding, sep = split_for_append(to_bytes(script))
        return Script.deserialize(preceding + sep + self.segment_bytes())

    def unlock(self):
        raise TypeError("SIGMA signatures cannot be unlocked")

    def __repr__(self):
        return f"<Sigma {self.data.algorithm.value} {self.data.address} vin={self.data.vin} valid={self.data.valid}>"


# -----------------------------
# Transaction helpers
# -----------------------------

def _anchor_hash(tx: Tx, vin: int) -> bytes:
    if not (0 <= vin < len(tx.inputs)):
        raise IndexError(f"vin {vin} out of range ({len(tx.inputs)} inputs)")
    txin = tx.inputs[vin]
    return input_hash(txin.resolve_source_txid(), txin.source_output_index)


def sign_output(tx: Tx, output_index: int, private_key: PrivateKey, vin: int = 0,
                algorithm: Algorithm = Algorithm.BSM, verifier: Optional[PublicKey] = None) -> Sigma:
    """Sign output ``output_index`` of ``tx`` in place, anchored to input ``vin``."""
    out = tx.outputs[output_index]
    raw = out.script_bytes()
    in_hash = _anchor_hash(tx, vin)
    preceding, _ = split_for_append(raw)

    sigma = Sigma.sign(in_hash, data_hash(preceding), private_key, algorithm=algorithm, vin=vin, verifier=verifier)
    tx.outputs[output_index] = TxOut(out.satoshis, sigma.append_to(raw))
    sigma.data.bitcom_index = len(BitCom.decode(tx.outputs[output_index].script_bytes()).protocols) - 1
    log.info("[sign_output] output %d signed by %s", output_index, sigma.data.address, extra={"vin": vin})
    return sigma


def verify_output(tx: Tx, output_index: int, sigma_instance: int = 0,
                  recipient_private_key: Optional[PrivateKey] = None) -> Optional[Sigma]:
    """Re-derive the message for the ``sigma_instance``-th SIGMA segment of an output and verify it."""
    raw = tx.outputs[output_index].script_bytes()
    found = segments_for(raw, CFG.SIGMA_PREFIX)
    if sigma_instance >= len(found):
        return None
    index, segment = found[sigma_instance]
    sigma = _decode_segment(index, segment)
    if sigma is None:
        return None
    if sigma.data.vin >= len(tx.inputs):
        log.debug("[verify_output] vin %d not in tx", sigma.data.vin, extra={"vin": sigma.data.vin})
        sigma.data.valid = False
        return sigma
    sigma.verify_with_hashes(_anchor_hash(tx, sigma.data.vin), data_hash(raw[:segment.pos]), recipient_private_key)
    return sigma


__all__ = ["Algorithm", "SigmaData", "Sigma", "sign_output", "verify_output"]
