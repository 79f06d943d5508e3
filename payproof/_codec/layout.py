"""
Anchor Data Format Layout.

Layout (byte offsets):
    0   "PAYPROOF"                 <- Magic (8 bytes, identifies PayProof anchors)
    8   <version>                  <- 0x01 single record, 0x02 batch
    9   <count>                    <- Batch only: number of records (0..255)
    ..  <proof_hash><payment_id>   <- Records, 64 bytes each, in order

Record:
    proof_hash  32 bytes  raw digest (written from 64 hex chars, 0x optional)
    payment_id  32 bytes  UTF-8, right-padded with NUL bytes

Padding Protocol:
    - Writer: UTF-8 encode, reject > 32 bytes or any NUL, pad with b"\\x00"
    - Reader: strip trailing b"\\x00", UTF-8 decode
    - Ids from legacy 31-byte bytes32 encoders read back unchanged
"""

from __future__ import annotations

import re

from payproof import (
    ANCHOR_MAGIC,
    ANCHOR_VERSION_BATCH,
    ANCHOR_VERSION_SINGLE,
    HASH_SLOT_SIZE,
    PAYMENT_ID_SLOT_SIZE,
)

MAGIC = ANCHOR_MAGIC
VERSION_OFFSET = len(MAGIC)
COUNT_OFFSET = VERSION_OFFSET + 1

# Versions the reader understands; anything else decodes to an empty payload
SUPPORTED_VERSIONS = frozenset({ANCHOR_VERSION_SINGLE, ANCHOR_VERSION_BATCH})

_PAD = b"\x00"

# 32-byte digest as hex, case-insensitive (normalised to lowercase on write)
_HASH_HEX_RE = re.compile(r"^[0-9a-fA-F]{64}$")


class EncodingError(ValueError):
    """Input cannot be packed into the anchor data format."""


def strip_hex_prefix(value: str) -> str:
    if value[:2] in ("0x", "0X"):
        return value[2:]
    return value


def normalize_proof_hash(proof_hash: str) -> str:
    """Return the hash as 64 lowercase hex chars. Raises EncodingError."""
    if not isinstance(proof_hash, str):
        raise EncodingError(f"Invalid proof hash: expected hex string, got {proof_hash!r}")
    digits = strip_hex_prefix(proof_hash.strip())
    if not _HASH_HEX_RE.match(digits):
        raise EncodingError(
            f"Invalid proof hash: must be {HASH_SLOT_SIZE} bytes "
            f"(64 hex chars, 0x optional), got {proof_hash!r}"
        )
    return digits.lower()


def pack_proof_hash(proof_hash: str) -> bytes:
    return bytes.fromhex(normalize_proof_hash(proof_hash))


def pack_payment_id(payment_id: str) -> bytes:
    """Encode a payment id into its fixed 32-byte slot."""
    if not isinstance(payment_id, str):
        raise EncodingError(f"Invalid payment id: expected str, got {payment_id!r}")
    if "\x00" in payment_id:
        raise EncodingError("Invalid payment id: must not contain NUL characters")
    encoded = payment_id.encode("utf-8")
    if len(encoded) > PAYMENT_ID_SLOT_SIZE:
        raise EncodingError(
            f"Payment id too long: {len(encoded)} bytes UTF-8, "
            f"slot holds {PAYMENT_ID_SLOT_SIZE}"
        )
    return encoded.ljust(PAYMENT_ID_SLOT_SIZE, _PAD)


def unpack_payment_id(slot: bytes) -> str:
    """Reverse of pack_payment_id. Raises UnicodeDecodeError on bad slots."""
    return slot.rstrip(_PAD).decode("utf-8")
