# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of BitcomSig - see LICENSE
# Refs: BIP143; SIGHASH_FORKID; nLockTime
"""Simple Lock: coins spendable by a key hash only after a block height.

Script layout::

    LOCK_PREFIX || push20(pkh) || script_number(until) || LOCK_SUFFIX

Spending requires ``tx.locktime >= until`` and a zero sequence on the
spending input. Both are enforced by the ledger when the transaction is
validated, not here.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from ..core.number import encode_script_number, decode_script_number
from ..core.tx import Tx
from ..utils import config as CFG
from ..utils.helpers import Script, hash256, push_data, sighash_preimage, sign_digest_der_low_s_strict, to_bytes
from ..utils.sig_logging import get_ctx_logger
from ..wallet.keys import PrivateKey, address_to_pkh

log = get_ctx_logger("bitcomsig.templates.lock", protocol="LOCK")


class LockScriptError(ValueError):
    pass


@dataclass
class LockDecoded:
    pkh: bytes
    until: int


class LockUnlocker:
    def __init__(self, private_key: PrivateKey, scope: int,
                 source_satoshis: Optional[int] = None, locking_script: Optional[Script] = None):
        self.private_key = private_key
        self.scope = scope
        self.source_satoshis = source_satoshis
        self.locking_script = locking_script

    def sign(self, tx: Tx, input_index: int) -> Script:
        txin = tx.inputs[input_index]
        source_txid = txin.resolve_source_txid()
        source_out = txin.source_output()

        sats = self.source_satoshis
        if sats is None:
            sats = source_out.satoshis if source_out is not None else 0
        subscript = self.locking_script
        if subscript is None:
            subscript = source_out.locking_script if source_out is not None else Script()

        preimage = sighash_preimage(tx, input_index, to_bytes(subscript), sats, self.scope, source_txid)
        der = sign_digest_der_low_s_strict(self.private_key.sk, hash256(preimage))
        pubkey = self.private_key.public_key().encode(True)
        log.debug("[sign] input %d scope=0x%02x sats=%d", input_index, self.scope, sats)
        return Script([der + bytes([self.scope]), pubkey])

    def estimate_length(self) -> int:
        return CFG.LOCK_UNLOCK_ESTIMATE


class Lock:
    def lock(self, address: str, until: int) -> Script:
        pkh = address_to_pkh(address)
        raw = CFG.LOCK_PREFIX + push_data(pkh) + Script(encode_script_number(until)).serialize() + CFG.LOCK_SUFFIX
        return Script.deserialize(raw)

    def unlock(self, private_key: PrivateKey, sign_outputs: str = "all", any_one_can_pay: bool = False,
               source_satoshis: Optional[int] = None, locking_script: Optional[Script] = None) -> LockUnlocker:
        if sign_outputs not in CFG.SIGN_OUTPUTS:
            raise ValueError(f"sign_outputs must be one of {sorted(CFG.SIGN_OUTPUTS)}")
        scope = CFG.SIGHASH_FORKID | CFG.SIGN_OUTPUTS[sign_outputs]
        if any_one_can_pay:
            scope |= CFG.SIGHASH_ANYONECANPAY
        return LockUnlocker(private_key, scope, source_satoshis, locking_script)

    @staticmethod
    def is_lock(script) -> bool:
        raw = to_bytes(script)
        return raw.startswith(CFG.LOCK_PREFIX) and raw.endswith(CFG.LOCK_SUFFIX)

    @staticmethod
    def decode(script) -> LockDecoded:
        if not Lock.is_lock(script):
            raise LockScriptError("Script is not a valid Lock script")
        raw = to_bytes(script)
        pkh_start = len(CFG.LOCK_PREFIX) + 1  # skip the 0x14 push opcode
        if len(raw) < pkh_start + CFG.PKH_LEN + len(CFG.LOCK_SUFFIX) or raw[pkh_start - 1] != CFG.PKH_LEN:
            raise LockScriptError("Script is not a valid Lock script: missing 20-byte pkh push")
        pkh = raw[pkh_start:pkh_start + CFG.PKH_LEN]
        until_raw = raw[pkh_start + CFG.PKH_LEN:len(raw) - len(CFG.LOCK_SUFFIX)]
        try:
            until = decode_script_number(until_raw)
        except ValueError as e:
            raise LockScriptError(f"Script is not a valid Lock script: {e}") from e
        return LockDecoded(pkh=pkh, until=until)


__all__ = ["LockScriptError", "LockDecoded", "LockUnlocker", "Lock"]
