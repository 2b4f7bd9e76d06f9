# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of BitcomSig - see LICENSE
# Refs: BIP143; SIGHASH_FORKID; CompactSize; libsecp256k1; LowS-Policy
from __future__ import annotations
import hashlib
from collections import namedtuple
from typing import List, Tuple, Optional
from Crypto.Hash import RIPEMD160
from ecdsa import SECP256k1, util, VerifyingKey, BadSignatureError

from ..utils import config as CFG

# opcode constants
OP_0 = 0x00
OP_PUSHDATA1 = 0x4c
OP_PUSHDATA2 = 0x4d
OP_PUSHDATA4 = 0x4e
OP_1NEGATE = 0x4f
OP_1 = 0x51
OP_16 = 0x60
OP_RETURN = 0x6a
OP_DUP = 0x76
OP_EQUALVERIFY = 0x88
OP_HASH160 = 0xA9
OP_CHECKSIG = 0xAC

# ======== SIGNATURE HELPERS ========
SECP256K1_P = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEFFFFFC2F
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
HALF_N = SECP256K1_N // 2


# -----------------------------
# BYTES
# -----------------------------

def to_bytes(x) -> bytes:
    if isinstance(x, Script):
        return x.serialize()
    if isinstance(x, (bytes, bytearray)):
        return bytes(x)
    if isinstance(x, str):
        try:
            return bytes.fromhex(x)
        except ValueError:
            return x.encode("utf-8")
    return b""


# -----------------------------
# PUSH PARSING
# -----------------------------

# op is the opcode byte, data the pushed payload (None for non-push opcodes),
# pos/end the byte range the chunk occupies inside the script
Chunk = namedtuple("Chunk", ["op", "data", "pos", "end"])

def read_push(script: bytes, i: int):
    if i >= len(script):
        return None, i
    op = script[i]; i += 1
    if op <= 0x4b:
        ln = op
    elif op == OP_PUSHDATA1:
        if i >= len(script): return None, i
        ln = script[i]; i += 1
    elif op == OP_PUSHDATA2:
        if i+1 >= len(script): return None, i
        ln = int.from_bytes(script[i:i+2], "little"); i += 2
    elif op == OP_PUSHDATA4:
        if i+3 >= len(script): return None, i
        ln = int.from_bytes(script[i:i+4], "little"); i += 4
    else:
        return (op, None), i
    if i + ln > len(script):
        return None, i
    data = script[i:i+ln]; i += ln
    return (op, data), i

def parse_chunks(script: bytes, strict: bool = True) -> List[Chunk]:
    """Split raw script bytes into chunks, keeping each chunk's byte offsets.

    A truncated push raises ValueError when ``strict``; otherwise parsing stops
    there and the chunks read so far are returned.
    """
    script = bytes(script)
    chunks: List[Chunk] = []
    i = 0
    while i < len(script):
        item, i2 = read_push(script, i)
        if item is None:
            if not strict:
                break
            raise ValueError(f"script short read at offset {i}")
        op, data = item
        chunks.append(Chunk(op, data, i, i2))
        i = i2
    return chunks

def push_data(b: bytes) -> bytes:
    """Minimal push for ``b``: direct length opcode up to 75 bytes, then PUSHDATA1/2/4."""
    n = len(b)
    if n <= 75:
        return bytes([n]) + b
    elif n <= 255:
        return bytes([OP_PUSHDATA1, n]) + b
    elif n <= 65535:
        return bytes([OP_PUSHDATA2]) + n.to_bytes(2, 'little') + b
    else:
        return bytes([OP_PUSHDATA4]) + n.to_bytes(4, 'little') + b


# -----------------------------
# HASHING
# -----------------------------

def sha256(b: bytes) -> bytes:
    return hashlib.sha256(b).digest()

def ripemd160(b: bytes) -> bytes:
    return RIPEMD160.new(b).digest()

def hash160(b: bytes) -> bytes:
    return ripemd160(sha256(b))

def hash256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


# -----------------------------
# VARINT ENCODING (Bitcoin-style)
# -----------------------------

def encode_varint(i: int) -> bytes:
    if i < 0xfd:
        return i.to_bytes(1, 'little')
    elif i <= 0xffff:
        return b'\xfd' + i.to_bytes(2, 'little')
    elif i <= 0xffffffff:
        return b'\xfe' + i.to_bytes(4, 'little')
    else:
        return b'\xff' + i.to_bytes(8, 'little')

def serialize_bytes_with_len(b: bytes) -> bytes:
    return encode_varint(len(b)) + b


# ========== Script Class ==========

class Script:

    def __init__(self, cmds: list = None):
        self.cmds = list(cmds) if cmds else []

    @staticmethod
    def _encode_pushdata(b: bytes) -> bytes:
        return push_data(b)

    @classmethod
    def _read_push_or_opcode(cls, first: int, data: bytes, i: int):

        if 1 <= first <= 75:
            n = first
            end = i + n
            if end > len(data):
                raise ValueError("script short read (small push)")
            return data[i:end], end

        if first == OP_0:
            return OP_0, i

        if first == OP_PUSHDATA1:
            if i + 1 > len(data):
                raise ValueError("script short read (PUSHDATA1 header)")
            n = data[i]
            i += 1
            end = i + n
            if end > len(data):
                raise ValueError("script short read (PUSHDATA1 payload)")
            return data[i:end], end

        if first == OP_PUSHDATA2:
            if i + 2 > len(data):
                raise ValueError("script short read (PUSHDATA2 header)")
            n = int.from_bytes(data[i:i+2], 'little')
            i += 2
            end = i + n
            if end > len(data):
                raise ValueError("script short read (PUSHDATA2 payload)")
            return data[i:end], end

        if first == OP_PUSHDATA4:
            if i + 4 > len(data):
                raise ValueError("script short read (PUSHDATA4 header)")
            n = int.from_bytes(data[i:i+4], 'little')
            i += 4
            end = i + n
            if end > len(data):
                raise ValueError("script short read (PUSHDATA4 payload)")
            return data[i:end], end

        return first, i

    def serialize(self) -> bytes:
        out = bytearray()
        for cmd in self.cmds:
            if isinstance(cmd, int):
                out.append(cmd & 0xff)  # opcode
            elif isinstance(cmd, (bytes, bytearray)):
                out += self._encode_pushdata(bytes(cmd))
            else:
                raise TypeError(f"Unsupported script cmd type: {type(cmd)}")
        return bytes(out)

    @classmethod
    def deserialize(cls, data: bytes) -> 'Script':
        cmds = []
        i = 0
        n = len(data)
        while i < n:
            first = data[i]
            i += 1
            item, i = cls._read_push_or_opcode(first, data, i)
            cmds.append(item)
        return cls(cmds)

    @classmethod
    def from_hex(cls, hex_str: str) -> 'Script':
        return cls.deserialize(bytes.fromhex(hex_str))

    def to_hex(self) -> str:
        return self.serialize().hex()

    def pushes(self) -> List[bytes]:
        """Payload of every command by position. Opcodes carry no data and read as empty bytes."""
        return [bytes(cmd) if isinstance(cmd, (bytes, bytearray)) else b"" for cmd in self.cmds]

    def __len__(self):
        return len(self.cmds)

    def __eq__(self, other):
        if not isinstance(other, Script):
            return NotImplemented
        return self.serialize() == other.serialize()

    def __repr__(self):
        return f"<Script {self.to_hex()}>"

    # ---------------------------
    # Helpers
    # ---------------------------
    @staticmethod
    def p2pkh_script(pubkey_hash: bytes) -> 'Script':
        if len(pubkey_hash) != CFG.PKH_LEN:
            raise ValueError("pubkey hash must be 20 bytes")
        return Script([OP_DUP, OP_HASH160, bytes(pubkey_hash), OP_EQUALVERIFY, OP_CHECKSIG])


# ========== DER / low-S ==========

class DerSigError(ValueError):
    pass

def _int_from_bytes(b: bytes) -> int:
    return int.from_bytes(b, "big", signed=False)

def _int_to_bytes(i: int) -> bytes:
    if i < 0:
        raise ValueError("negative integer")
    if i == 0:
        return b"\x00"
    length = (i.bit_length() + 7) // 8
    return i.to_bytes(length, "big")

def is_low_s(s: int) -> bool:
    return 1 <= s <= HALF_N

def canonicalize_rs(r: int, s: int) -> Tuple[int, int]:
    if not (1 <= r < SECP256K1_N) or not (1 <= s < SECP256K1_N):
        raise DerSigError("r or s out of range")
    if s > HALF_N:
        s = SECP256K1_N - s
    return r, s

def der_encode_sig_strict(r: int, s: int) -> bytes:
    def enc_int(x: int) -> bytes:
        if x <= 0:
            raise DerSigError("DER int must be positive")
        xb = _int_to_bytes(x)
        if xb[0] & 0x80:
            xb = b"\x00" + xb
        return xb

    r_b = enc_int(r)
    s_b = enc_int(s)

    seq = b"\x02" + bytes([len(r_b)]) + r_b + b"\x02" + bytes([len(s_b)]) + s_b
    if len(seq) >= 0x80:
        raise DerSigError("sequence too long")
    return b"\x30" + bytes([len(seq)]) + seq

def der_parse_sig_strict(sig: bytes) -> Tuple[int, int]:
    if not isinstance(sig, (bytes, bytearray)):
        raise DerSigError("signature must be bytes")
    sig = bytes(sig)
    if len(sig) < 8:  # minimal DER with tiny r,s
        raise DerSigError("signature too short")

    if sig[0] != 0x30:
        raise DerSigError("bad sequence tag")
    if sig[1] >= 0x80:
        raise DerSigError("invalid length form")
    if 2 + sig[1] != len(sig):
        raise DerSigError("superfluous data after sequence")

    idx = 2
    values = []
    for name in ("r", "s"):
        if idx + 2 > len(sig) or sig[idx] != 0x02:
            raise DerSigError(f"missing {name} integer tag")
        ln = sig[idx + 1]
        idx += 2
        if ln == 0 or idx + ln > len(sig):
            raise DerSigError(f"invalid {name} length")
        raw = sig[idx:idx + ln]
        idx += ln
        if raw[0] & 0x80:
            raise DerSigError(f"{name} negative")
        if len(raw) > 1 and raw[0] == 0x00 and not (raw[1] & 0x80):
            raise DerSigError(f"{name} non-minimal")
        v = _int_from_bytes(raw)
        if not (1 <= v < SECP256K1_N):
            raise DerSigError(f"{name} out of range")
        values.append(v)
    if idx != len(sig):
        raise DerSigError("trailing bytes in signature")
    return values[0], values[1]

def sign_digest_rs_low_s(sk, digest32: bytes) -> Tuple[int, int]:
    if not isinstance(digest32, (bytes, bytearray)) or len(digest32) != 32:
        raise ValueError("sign_digest_rs_low_s expects a 32-byte digest")
    r_b, s_b = sk.sign_digest_deterministic(
        bytes(digest32),
        sigencode=util.sigencode_strings,
        hashfunc=hashlib.sha256,)
    r = int.from_bytes(r_b, "big")
    s = int.from_bytes(s_b, "big")
    return canonicalize_rs(r, s)

def sign_digest_der_low_s_strict(sk, digest32: bytes) -> bytes:
    r, s = sign_digest_rs_low_s(sk, digest32)
    return der_encode_sig_strict(r, s)

def verify_digest_rs(vk: VerifyingKey, digest32: bytes, r: int, s: int) -> bool:
    if not (1 <= r < SECP256K1_N) or not (1 <= s < SECP256K1_N):
        return False
    sig64 = util.sigencode_string(r, s, SECP256k1.order)
    try:
        return vk.verify_digest(sig64, digest32, sigdecode=util.sigdecode_string)
    except (BadSignatureError, ValueError):
        return False

def verify_der(vk: VerifyingKey, digest32: bytes, der_sig: bytes) -> bool:
    try:
        r, s = der_parse_sig_strict(der_sig)
    except DerSigError:
        return False
    return verify_digest_rs(vk, digest32, r, s)



# ========== Low-level serializers ===========

def _serialize_outpoint(txid_hex: str, vout: int) -> bytes:
    txid = bytes.fromhex(txid_hex)
    if len(txid) != 32:
        raise ValueError("txid must be 32 bytes")
    return txid[::-1] + (vout if vout >= 0 else 0xffffffff).to_bytes(4, 'little')

def _serialize_txout(txout) -> bytes:
    out = int(txout.satoshis).to_bytes(8, 'little')
    out += serialize_bytes_with_len(to_bytes(txout.locking_script))
    return out

def _serialize_txin(txin) -> bytes:
    out = _serialize_outpoint(txin.resolve_source_txid(), txin.source_output_index)
    out += serialize_bytes_with_len(to_bytes(txin.unlocking_script))
    out += int(txin.sequence).to_bytes(4, 'little')
    return out

def serialize_tx(tx) -> bytes:
    res = int(tx.version).to_bytes(4, 'little')
    res += encode_varint(len(tx.inputs))
    for txin in tx.inputs:
        res += _serialize_txin(txin)
    res += encode_varint(len(tx.outputs))
    for txout in tx.outputs:
        res += _serialize_txout(txout)
    res += int(tx.locktime).to_bytes(4, 'little')
    return res


# ========== BIP143 / FORKID sig-hash preimage ===========

def _hash_prevouts(tx) -> bytes:
    data = b''.join(_serialize_outpoint(txin.resolve_source_txid(), txin.source_output_index) for txin in tx.inputs)
    return hash256(data)

def _hash_sequence(tx) -> bytes:
    data = b''.join(int(txin.sequence).to_bytes(4, 'little') for txin in tx.inputs)
    return hash256(data)

def _hash_outputs(outputs) -> bytes:
    return hash256(b''.join(_serialize_txout(o) for o in outputs))

def sighash_preimage(tx, input_index: int, subscript: bytes, satoshis: int, scope: int,
                     source_txid: Optional[str] = None) -> bytes:
    """BIP143-style preimage with the FORKID flag, covering ALL / NONE / SINGLE and ANYONECANPAY."""
    base = scope & 0x1f
    anyone_can_pay = bool(scope & CFG.SIGHASH_ANYONECANPAY)
    zero = b'\x00' * 32

    hash_prevouts = zero if anyone_can_pay else _hash_prevouts(tx)
    if anyone_can_pay or base in (CFG.SIGHASH_SINGLE, CFG.SIGHASH_NONE):
        hash_sequence = zero
    else:
        hash_sequence = _hash_sequence(tx)
    if base not in (CFG.SIGHASH_SINGLE, CFG.SIGHASH_NONE):
        hash_outputs = _hash_outputs(tx.outputs)
    elif base == CFG.SIGHASH_SINGLE and input_index < len(tx.outputs):
        hash_outputs = _hash_outputs([tx.outputs[input_index]])
    else:
        hash_outputs = zero

    txin = tx.inputs[input_index]
    txid_hex = source_txid or txin.resolve_source_txid()
    data = b''
    data += int(tx.version).to_bytes(4, 'little')
    data += hash_prevouts
    data += hash_sequence
    data += _serialize_outpoint(txid_hex, txin.source_output_index)
    data += serialize_bytes_with_len(to_bytes(subscript))
    data += int(satoshis).to_bytes(8, 'little')
    data += int(txin.sequence).to_bytes(4, 'little')
    data += hash_outputs
    data += int(tx.locktime).to_bytes(4, 'little')
    data += int(scope).to_bytes(4, 'little')
    return data
