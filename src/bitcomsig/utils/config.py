# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of BitcomSig - see LICENSE
# Refs: BIP143; BSM; BRC-42; BRC-77; SIGMA; AIP

'''
=============================================================================
 -------- !!! PROTOCOL-CRITICAL REMINDER - READ BEFORE EDITING !!! --------
=============================================================================

The values below **MUST BE IDENTICAL** across every signer and verifier.
Changing them silently produces different messages / scripts, and every
signature made under the old value stops verifying.

  1) PROTOCOL LABELS
   - SIGMA_PREFIX, AIP_PREFIX, AIP_ALGORITHM, PIPE

  2) SIGNED MESSAGE
   - BSM_MAGIC, BRC77_VERSION, BRC77_INVOICE_PREFIX, BRC77_ANYONE_SECRET

  3) LOCK TEMPLATE
   - LOCK_PREFIX_HEX, LOCK_SUFFIX_HEX

  4) SIGHASH
   - SIGHASH_* flags

NOT PROTOCOL (safe to differ between installs):
   logging/path, address network (MODE).

=============================================================================
'''

import os
import appdirs


# =============================================================================
# 1. MODE & APPLICATION
# =============================================================================
# ---- RUNTIME PROFILE ----
MODE    = "main"  # "main" or "test", selects address / WIF version bytes
IS_MAIN = (MODE.lower() == "main")  # cached boolean for network toggles

# ---- APP METADATA ----
APP_NAME     = "BitcomSig"  # display name used for user data directories
APP_AUTHOR   = "TsarStudio"  # vendor string passed into platform dir helpers
APP_LOG_DIR  = appdirs.user_log_dir(APP_NAME, APP_AUTHOR)  # OS-specific log folder resolved via appdirs


# =============================================================================
# 2. ADDRESSES & KEYS
# =============================================================================
ADDRESS_VERSION_MAIN = 0x00  # P2PKH base58check version byte (mainnet)
ADDRESS_VERSION_TEST = 0x6F  # P2PKH base58check version byte (testnet)
WIF_VERSION_MAIN     = 0x80  # WIF private key version byte (mainnet)
WIF_VERSION_TEST     = 0xEF  # WIF private key version byte (testnet)

ADDRESS_VERSION = ADDRESS_VERSION_MAIN if IS_MAIN else ADDRESS_VERSION_TEST  # active address version
WIF_VERSION     = WIF_VERSION_MAIN if IS_MAIN else WIF_VERSION_TEST  # active WIF version
PKH_LEN         = 20  # hash160 length carried by addresses and Lock scripts


# =============================================================================
# 3. PROTOCOL LABELS (BITCOM)
# =============================================================================
SIGMA_PREFIX  = "SIGMA"  # label of the address-anchored signature segment
AIP_PREFIX    = "15PciHG22SNLQJXMoSUaWVi7WSqc7hCfva"  # label of the plain message signature segment
AIP_ALGORITHM = "BITCOIN_ECDSA"  # only algorithm string emitted for AIP
PIPE          = b"|"  # segment delimiter, pushed as a 1-byte data push

SIGMA_MIN_FIELDS = 4  # algorithm, address, signature, vin
AIP_MIN_FIELDS   = 3  # algorithm, address, signature


# =============================================================================
# 4. SIGNED MESSAGES
# =============================================================================
# ---- LEGACY (BSM) ----
BSM_MAGIC             = b"Bitcoin Signed Message:\n"  # magic prefix hashed ahead of every message
COMPACT_SIG_LEN       = 65  # header + r + s
COMPACT_HEADER_BASE   = 27  # header = base + recid (+4 when compressed)
COMPACT_COMPRESSED    = 4  # header offset flagging a compressed public key
RECOVERY_CANDIDATES   = (0, 1, 2, 3)  # every recovery id tried, header byte is never trusted

# ---- DIRECT RECOVERY (BRC-77) ----
BRC77_VERSION        = bytes.fromhex("42423301")  # signed message version marker
BRC77_INVOICE_PREFIX = "2-message signing-"  # BRC-42 invoice number prefix, base64 key id follows
BRC77_ANYONE_SECRET  = 1  # private key standing in for "anyone can verify"
BRC77_KEY_ID_LEN     = 32  # random key id length


# =============================================================================
# 5. LOCK TEMPLATE
# =============================================================================
LOCK_PREFIX_HEX = "20d37f4de0d1c735b4d51a5572df0f3d9104d1d9e99db8694fdd1b1a92e1f0dce1757601687f76a9"  # bytes before the pkh push
LOCK_SUFFIX_HEX = "88ac7e7601207f75a9011488"  # bytes after the "until" height
LOCK_PREFIX     = bytes.fromhex(LOCK_PREFIX_HEX)
LOCK_SUFFIX     = bytes.fromhex(LOCK_SUFFIX_HEX)
LOCK_UNLOCK_ESTIMATE = 108  # signature (~71-73) + pubkey (33) + two push opcodes


# =============================================================================
# 6. SIGHASH
# =============================================================================
SIGHASH_ALL          = 0x01
SIGHASH_NONE         = 0x02
SIGHASH_SINGLE       = 0x03
SIGHASH_FORKID       = 0x40
SIGHASH_ANYONECANPAY = 0x80
SIGN_OUTPUTS         = {"all": SIGHASH_ALL, "none": SIGHASH_NONE, "single": SIGHASH_SINGLE}
DEFAULT_SEQUENCE     = 0xFFFFFFFF  # input sequence when none given


# =============================================================================
# 7. LOGGING
# =============================================================================
LOG_PATH                    = os.path.join(APP_LOG_DIR, "bitcomsig.log")  # default log file
LOG_LEVEL                   = "INFO"  # root level for setup_logging
LOG_FORMAT                  = "plain"  # "plain" or "json"
LOG_TO_CONSOLE              = True  # mirror records on stderr
LOG_ROTATE_MAX_BYTES        = 5_000_000  # rotate file after this many bytes
LOG_BACKUP_COUNT            = 3  # rotated files kept
LOG_RATE_LIMIT_SECONDS      = 0.0  # duplicate suppression window per handler (0 = off)
