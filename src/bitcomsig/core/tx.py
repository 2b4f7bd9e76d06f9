# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of BitcomSig - see LICENSE
# Refs: BIP143; SIGHASH_FORKID
from __future__ import annotations
from typing import Optional

from ..utils import config as CFG
from ..utils.helpers import Script, hash256, serialize_tx, to_bytes


class MissingSourceError(ValueError):
    pass


class Tx:
    def __init__(self, version: int = 1, locktime: int = 0, inputs=None, outputs=None):
        self.version = int(version)
        self.inputs = list(inputs or [])
        self.outputs = list(outputs or [])
        self.locktime = int(locktime)

    def add_input(self, txin: "TxIn") -> "Tx":
        self.inputs.append(txin)
        return self

    def add_output(self, txout: "TxOut") -> "Tx":
        self.outputs.append(txout)
        return self

    # -------- IDs ----------

    def serialize(self) -> bytes:
        return serialize_tx(self)

    def hash(self) -> bytes:
        return hash256(self.serialize())

    def txid(self) -> str:
        return self.hash()[::-1].hex()

    def __repr__(self):
        return f"<Tx v={self.version} vin={len(self.inputs)} vout={len(self.outputs)} lock={self.locktime}>"


class TxIn:
    def __init__(self, source_txid: Optional[str] = None, source_output_index: int = 0,
                 unlocking_script: Script = None, sequence: int = CFG.DEFAULT_SEQUENCE,
                 source_transaction: Optional[Tx] = None):
        if source_txid is not None:
            if not isinstance(source_txid, str) or len(bytes.fromhex(source_txid)) != 32:
                raise ValueError("source_txid must be a 32-byte hex string")
        if not isinstance(source_output_index, int) or source_output_index < 0:
            raise ValueError("source_output_index must be an integer >= 0")

        self.source_txid = source_txid.lower() if source_txid else None
        self.source_output_index = int(source_output_index)
        self.unlocking_script = unlocking_script or Script([])
        self.sequence = int(sequence)
        self.source_transaction = source_transaction

    def resolve_source_txid(self) -> str:
        if self.source_txid:
            return self.source_txid
        if self.source_transaction is not None:
            return self.source_transaction.txid()
        raise MissingSourceError("The input source_txid or source_transaction is required for transaction signing.")

    def source_output(self) -> Optional["TxOut"]:
        src = self.source_transaction
        if src is None or self.source_output_index >= len(src.outputs):
            return None
        return src.outputs[self.source_output_index]

    def __repr__(self):
        txid = self.source_txid or (self.source_transaction and "<tx>") or "?"
        return f"<TxIn {txid}:{self.source_output_index} seq={self.sequence}>"


class TxOut:
    def __init__(self, satoshis: int, locking_script: Script):
        if not isinstance(satoshis, int) or satoshis < 0:
            raise ValueError("satoshis must be integer >= 0")
        if not isinstance(locking_script, Script):
            raise TypeError("locking_script must be Script instance")

        self.satoshis = satoshis
        self.locking_script = locking_script

    def script_bytes(self) -> bytes:
        return to_bytes(self.locking_script)

    def __repr__(self):
        return f"<TxOut sats={self.satoshis}>"
