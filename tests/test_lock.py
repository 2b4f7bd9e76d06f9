# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of BitcomSig - see LICENSE
# Refs: BIP143; SIGHASH_FORKID; nLockTime

import os
import sys

import pytest

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(PROJECT_ROOT, "src")
for path in (PROJECT_ROOT, SRC_ROOT):
    if path not in sys.path:
        sys.path.append(path)

from bitcomsig.core.tx import MissingSourceError, Tx, TxIn, TxOut  # noqa: E402
from bitcomsig.templates.lock import Lock, LockScriptError  # noqa: E402
from bitcomsig.utils import config as CFG  # noqa: E402
from bitcomsig.utils.helpers import (  # noqa: E402
    Script,
    der_parse_sig_strict,
    hash256,
    is_low_s,
    sighash_preimage,
    verify_der,
)
from bitcomsig.wallet.keys import PrivateKey, address_to_pkh  # noqa: E402

ADDRESS = "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa"
PKH_HEX = "62e907b15cbf27d5425399ebf6f0fb50ebb88f18"
HEIGHTS = [0, 1, 15, 16, 127, 128, 255, 256, 65535, 500000, 800000, 2147483647]


def test_lock_script_bytes():
    script = Lock().lock(ADDRESS, 800000)
    assert script.to_hex() == CFG.LOCK_PREFIX_HEX + "14" + PKH_HEX + "0300350c" + CFG.LOCK_SUFFIX_HEX


@pytest.mark.parametrize("height", HEIGHTS)
def test_lock_decode_roundtrip(height):
    script = Lock().lock(ADDRESS, height)
    assert Lock.is_lock(script)
    decoded = Lock.decode(script)
    assert decoded.until == height
    assert decoded.pkh.hex() == PKH_HEX


def test_p2pkh_is_not_lock():
    p2pkh = Script.p2pkh_script(address_to_pkh(ADDRESS))
    assert not Lock.is_lock(p2pkh)
    with pytest.raises(LockScriptError):
        Lock.decode(p2pkh)


def test_bad_height_field():
    raw = CFG.LOCK_PREFIX + b"\x14" + bytes(20) + b"\x76" + CFG.LOCK_SUFFIX
    with pytest.raises(LockScriptError):
        Lock.decode(raw)


def _spend(key: PrivateKey, height: int = 800000, satoshis: int = 10000):
    lock_script = Lock().lock(key.to_address(), height)
    source = Tx()
    source.add_output(TxOut(satoshis, lock_script))
    tx = Tx(locktime=height)
    tx.add_input(TxIn(source_transaction=source, source_output_index=0, sequence=0))
    tx.add_output(TxOut(satoshis - 200, Script.p2pkh_script(key.public_key().to_hash160())))
    return tx, lock_script


def test_unlock_signs_input():
    key = PrivateKey.from_int(0xC0FFEE)
    tx, lock_script = _spend(key)
    unlocking = Lock().unlock(key, "all", False, 10000, lock_script).sign(tx, 0)
    assert len(unlocking) == 2
    sig, pub = unlocking.cmds
    assert sig[-1] == CFG.SIGHASH_ALL | CFG.SIGHASH_FORKID
    assert pub == key.public_key().encode(True)
    preimage = sighash_preimage(tx, 0, lock_script.serialize(), 10000, sig[-1])
    assert verify_der(key.public_key().vk, hash256(preimage), sig[:-1])
    assert is_low_s(der_parse_sig_strict(sig[:-1])[1])


def test_unlock_reads_source_output():
    key = PrivateKey.from_int(0xC0FFEE)
    tx, _ = _spend(key)
    assert Lock().unlock(key).sign(tx, 0) == Lock().unlock(key, "all", False, 10000, tx.inputs[0].source_output().locking_script).sign(tx, 0)


def test_unlock_scope_flags():
    key = PrivateKey.from_int(5)
    tx, _ = _spend(key)
    sig = Lock().unlock(key, "single", True).sign(tx, 0).cmds[0]
    assert sig[-1] == CFG.SIGHASH_SINGLE | CFG.SIGHASH_FORKID | CFG.SIGHASH_ANYONECANPAY
    with pytest.raises(ValueError):
        Lock().unlock(key, "some")


def test_unlock_without_source_txid():
    key = PrivateKey.from_int(5)
    tx = Tx()
    tx.add_input(TxIn(sequence=0))
    with pytest.raises(MissingSourceError):
        Lock().unlock(key, "all", False, 1000, Lock().lock(key.to_address(), 10)).sign(tx, 0)


def test_estimate_length():
    assert Lock().unlock(PrivateKey.from_random()).estimate_length() == 108


def test_decode_accepts_hex_script():
    script = Script.from_hex(Lock().lock(ADDRESS, 500000).to_hex())
    assert Lock.decode(script).until == 500000


def test_prefix_and_suffix_alone_is_not_lock_data():
    with pytest.raises(LockScriptError):
        Lock.decode(CFG.LOCK_PREFIX + CFG.LOCK_SUFFIX)


def test_signer_leaves_locktime_and_sequence_to_the_ledger():
    key = PrivateKey.from_int(0xC0FFEE)
    tx, lock_script = _spend(key, height=800000)
    tx.locktime = 799999
    tx.inputs[0].sequence = 5
    unlocking = Lock().unlock(key, "all", False, 10000, lock_script).sign(tx, 0)
    assert len(unlocking) == 2
    preimage = sighash_preimage(tx, 0, lock_script.serialize(), 10000, unlocking.cmds[0][-1])
    assert verify_der(key.public_key().vk, hash256(preimage), unlocking.cmds[0][:-1])
