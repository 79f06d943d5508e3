"""
Reader — lenient parser for PayProof anchor data.

Never raises. Anchored data is permanent, so anything the reader cannot make
sense of (too short, foreign prefix, unknown version, truncated or garbled
records) decodes to an empty payload, with the reason reported on the
DecodeResult for diagnostics.

Accepts raw bytes or hex text (0x optional, any case), as returned by
eth_getTransactionByHash in the ``input`` field.
"""

from __future__ import annotations

import logging
from typing import Any

from payproof import (
    ANCHOR_VERSION_SINGLE,
    HASH_SLOT_SIZE,
    HEADER_SIZE,
    RECORD_SIZE,
)
from payproof._codec.payload import AnchorPayload, AnchorRecord, DecodeIssue, DecodeResult
from payproof._codec.layout import (
    COUNT_OFFSET,
    MAGIC,
    SUPPORTED_VERSIONS,
    VERSION_OFFSET,
    strip_hex_prefix,
    unpack_payment_id,
)

logger = logging.getLogger(__name__)


def _to_bytes(data: Any) -> bytes | None:
    """Coerce tx data to bytes. Returns None if it is not bytes or valid hex."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    if not isinstance(data, str):
        return None
    digits = strip_hex_prefix(data.strip())
    # tx data is whole bytes; a dangling nibble means this is not tx data
    if len(digits) % 2:
        return None
    try:
        return bytes.fromhex(digits)
    except ValueError:
        return None


def _tolerate(issue: DecodeIssue, detail: str) -> DecodeResult:
    if issue is DecodeIssue.UNKNOWN_VERSION:
        logger.warning("Ignoring anchor data: %s", detail)
    else:
        logger.debug("Ignoring anchor data (%s): %s", issue.value, detail)
    return DecodeResult.tolerated(issue, detail)


class AnchorReader:
    """
    Anchor data reader.

    Usage:
        payload = AnchorReader.decode(tx["input"])
        result = AnchorReader.decode_result(tx["input"])
        if not result.ok:
            print(result.issue)
    """

    @staticmethod
    def is_anchor_data(data: Any) -> bool:
        """Fast check whether data starts with the PayProof magic."""
        raw = _to_bytes(data)
        return raw is not None and raw[:len(MAGIC)] == MAGIC

    @classmethod
    def decode(cls, data: Any) -> AnchorPayload:
        """Decode tx data into an AnchorPayload. Empty on any anomaly."""
        return cls.decode_result(data).payload

    @classmethod
    def decode_result(cls, data: Any) -> DecodeResult:
        """Decode tx data, reporting why the payload is empty if it is."""
        raw = _to_bytes(data)
        if raw is None:
            return _tolerate(DecodeIssue.MALFORMED, "input is not bytes or hex text")

        if len(raw) < HEADER_SIZE:
            return _tolerate(
                DecodeIssue.TOO_SHORT,
                f"{len(raw)} bytes, header needs {HEADER_SIZE}",
            )

        if raw[:len(MAGIC)] != MAGIC:
            return _tolerate(
                DecodeIssue.FOREIGN_PREFIX,
                f"prefix {raw[:len(MAGIC)].hex()} is not {MAGIC.hex()}",
            )

        version = raw[VERSION_OFFSET]
        if version not in SUPPORTED_VERSIONS:
            return _tolerate(
                DecodeIssue.UNKNOWN_VERSION,
                f"unknown format version {version:02x}",
            )

        if version == ANCHOR_VERSION_SINGLE:
            count = 1
            offset = VERSION_OFFSET + 1
        else:
            if len(raw) <= COUNT_OFFSET:
                return _tolerate(DecodeIssue.TRUNCATED, "missing record count")
            count = raw[COUNT_OFFSET]
            offset = COUNT_OFFSET + 1

        end = offset + count * RECORD_SIZE
        if len(raw) < end:
            return _tolerate(
                DecodeIssue.TRUNCATED,
                f"{count} record(s) need {end} bytes, got {len(raw)}",
            )

        records: list[AnchorRecord] = []
        for i in range(count):
            record = raw[offset:offset + RECORD_SIZE]
            try:
                payment_id = unpack_payment_id(record[HASH_SLOT_SIZE:])
            except UnicodeDecodeError:
                return _tolerate(
                    DecodeIssue.MALFORMED,
                    f"record {i}: payment id is not valid UTF-8",
                )
            records.append(AnchorRecord("0x" + record[:HASH_SLOT_SIZE].hex(), payment_id))
            offset += RECORD_SIZE

        return DecodeResult(AnchorPayload(tuple(records), version))
