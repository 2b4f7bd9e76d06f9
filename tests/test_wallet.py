# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of BitcomSig - see LICENSE
# Refs: BSM; BIP137; BRC-42; BRC-77

import base64
import os
import sys

import pytest
from cryptography.hazmat.primitives import hashes, hmac

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(PROJECT_ROOT, "src")
for path in (PROJECT_ROOT, SRC_ROOT):
    if path not in sys.path:
        sys.path.append(path)

from bitcomsig.utils import config as CFG  # noqa: E402
from bitcomsig.utils.helpers import SECP256K1_N  # noqa: E402
from bitcomsig.wallet import bsm, signed_message  # noqa: E402
from bitcomsig.wallet.keys import AddressError, PrivateKey, PublicKey, address_to_pkh, is_valid_address  # noqa: E402


def test_known_key_one_addresses():
    k = PrivateKey.from_int(1)
    assert k.to_address(True) == "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH"
    assert k.to_address(False) == "1EHNa6Q4Jz2uvNExL497mE43ikXhwF6kZm"
    assert k.to_wif() == "KwDiBf89QgGbjEhKnhXJuH7LrciVrZi3qYjgd9M7rFU73sVHnoWn"
    assert PrivateKey.from_wif(k.to_wif()).secret == 1
    assert PrivateKey.from_hex("00" * 31 + "01").to_address() == k.to_address()
    assert PublicKey.from_hex(k.public_key().to_hex(False)) == k.public_key()


def test_address_decode():
    assert address_to_pkh("1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa").hex() == "62e907b15cbf27d5425399ebf6f0fb50ebb88f18"
    assert not is_valid_address("1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNb")
    with pytest.raises(AddressError):
        address_to_pkh("not-an-address")


def test_brc42_child_keys_agree():
    alice, bob = PrivateKey.from_int(0xA11CE), PrivateKey.from_int(0xB0B)
    invoice = "2-message signing-test"
    priv_child = alice.derive_child(bob.public_key(), invoice)
    pub_child = alice.public_key().derive_child(bob, invoice)
    assert priv_child.public_key() == pub_child


def test_brc42_tweak_is_hmac_sha256_of_shared_point():
    alice, bob = PrivateKey.from_int(0xA11CE), PrivateKey.from_int(0xB0B)
    invoice = "2-message signing-test"
    mac = hmac.HMAC(alice.derive_shared_secret(bob.public_key()).encode(True), hashes.SHA256())
    mac.update(invoice.encode("utf-8"))
    tweak = int.from_bytes(mac.finalize(), "big")
    assert alice.derive_child(bob.public_key(), invoice).secret == (alice.secret + tweak) % SECP256K1_N


# -------- BSM ----------

def test_bsm_sign_verify():
    k = PrivateKey.from_int(0x1234)
    sig = bsm.sign(b"hello", k)
    assert len(sig) == CFG.COMPACT_SIG_LEN
    assert bsm.verify(b"hello", sig, k.to_address())
    assert not bsm.verify(b"hellp", sig, k.to_address())
    assert not bsm.verify(b"hello", sig, PrivateKey.from_int(7).to_address())


def test_bsm_header_layout():
    k = PrivateKey.from_int(0x1234)
    header, _, _ = bsm.split_compact(bsm.sign(b"m", k, compressed=True))
    assert 31 <= header <= 34
    header, _, _ = bsm.split_compact(bsm.sign(b"m", k, compressed=False))
    assert 27 <= header <= 30


def test_bsm_accepts_either_address_encoding():
    k = PrivateKey.from_int(0x1234)
    sig = bsm.sign(b"hello", k, compressed=True)
    assert bsm.verify(b"hello", sig, k.to_address(False))


def test_bsm_ignores_header_byte():
    k = PrivateKey.from_int(0x1234)
    sig = bsm.sign(b"hello", k)
    for header in (27, 28, 29, 30, 31, 32, 33, 34, 0):
        assert bsm.verify(b"hello", bytes([header]) + sig[1:], k.to_address())


def test_bsm_rejects_wrong_length():
    k = PrivateKey.from_int(0x1234)
    assert not bsm.verify(b"hello", bsm.sign(b"hello", k)[:64], k.to_address())
    with pytest.raises(ValueError):
        bsm.split_compact(b"\x00" * 10)


def test_recovery_factor_matches_signer():
    k = PrivateKey.from_int(0x4242)
    sig = bsm.sign(b"abc", k)
    header, r, s = bsm.split_compact(sig)
    rid = bsm.find_recovery_id(sig, b"abc", k.to_address())
    assert rid == header - 31
    assert bsm.recover_public_key(r, s, bsm.magic_hash(b"abc"), rid) == k.public_key()


# -------- BRC-77 ----------

def test_signed_message_for_anyone():
    k = PrivateKey.from_int(15)
    sig = signed_message.sign(b"msg", k)
    assert sig[:4] == CFG.BRC77_VERSION
    assert sig[37] == 0x00
    assert signed_message.verify(b"msg", sig)
    assert not signed_message.verify(b"msh", sig)


def test_signed_message_fixed_key_id_is_deterministic():
    k = PrivateKey.from_int(15)
    key_id = bytes(range(32))
    assert signed_message.sign(b"msg", k, key_id=key_id) == signed_message.sign(b"msg", k, key_id=key_id)


def test_signed_message_private_recipient():
    sender, recipient = PrivateKey.from_int(15), PrivateKey.from_int(21)
    sig = signed_message.sign(b"msg", sender, recipient.public_key())
    assert signed_message.verify(b"msg", sig, recipient)
    with pytest.raises(signed_message.SignedMessageError):
        signed_message.verify(b"msg", sig)
    with pytest.raises(signed_message.SignedMessageError):
        signed_message.verify(b"msg", sig, PrivateKey.from_int(22))


def test_signed_message_version_mismatch():
    sig = signed_message.sign(b"msg", PrivateKey.from_int(15))
    with pytest.raises(signed_message.SignedMessageError):
        signed_message.verify(b"msg", b"\x00\x00\x00\x00" + sig[4:])


def test_signed_message_truncated():
    sig = signed_message.sign(b"msg", PrivateKey.from_int(15))
    with pytest.raises(signed_message.SignedMessageError):
        signed_message.verify(b"msg", sig[:50])


def test_testnet_address_version():
    addr = PrivateKey.from_int(1).to_address(version=CFG.ADDRESS_VERSION_TEST)
    assert addr[0] in "mn"
    assert address_to_pkh(addr) == PrivateKey.from_int(1).public_key().to_hash160()


# -------- Reference vectors (bitcoinjs-message) ----------

REF_WIF = "5KYZdUEo39z3FPrtuX2QbbwGnNP5zTd7yyr2SC1j299sBCnWjss"
REF_MESSAGE = b"This is an example of a signed message."
REF_ADDRESS = "1F3sAm6ZtwLAUnj7d38pGFxtP3RVEvtsbV"
REF_SIG_UNCOMPRESSED = "G9L5yLFjti0QTHhPyFrZCT1V/MMnBtXKmoiKDZ78NDBjERki6ZTQZdSMCtkgoNmp17By9ItJr8o7ChX0XxY91nk="
REF_SIG_COMPRESSED = "H9L5yLFjti0QTHhPyFrZCT1V/MMnBtXKmoiKDZ78NDBjERki6ZTQZdSMCtkgoNmp17By9ItJr8o7ChX0XxY91nk="


def test_reference_signature_uncompressed_header():
    sig = base64.b64decode(REF_SIG_UNCOMPRESSED)
    assert bsm.verify(REF_MESSAGE, sig, REF_ADDRESS)
    assert not bsm.verify(REF_MESSAGE + b"!", sig, REF_ADDRESS)
    assert bsm.sign(REF_MESSAGE, PrivateKey.from_wif(REF_WIF), compressed=False) == sig


def test_reference_signature_compressed_header():
    sig = base64.b64decode(REF_SIG_COMPRESSED)
    key = PrivateKey.from_wif(REF_WIF)
    assert bsm.verify(REF_MESSAGE, sig, key.to_address(True))
    assert bsm.sign(REF_MESSAGE, key, compressed=True) == sig
