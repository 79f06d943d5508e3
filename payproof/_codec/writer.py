"""
Writer — packs anchor records into the PayProof data format.

Strict by contract: anything that does not fit a fixed-width slot raises
EncodingError before a single byte is produced. Output is the 0x-prefixed
lowercase hex string EVM nodes expect in a transaction's data field.
"""

from __future__ import annotations

import io
from typing import Iterable, Tuple, Union

from payproof import ANCHOR_VERSION_BATCH, ANCHOR_VERSION_SINGLE, MAX_BATCH_RECORDS
from payproof._codec.payload import AnchorRecord
from payproof._codec.layout import MAGIC, EncodingError, pack_payment_id, pack_proof_hash

RecordLike = Union[AnchorRecord, Tuple[str, str]]


def _pack_record(proof_hash: str, payment_id: str) -> bytes:
    return pack_proof_hash(proof_hash) + pack_payment_id(payment_id)


def _as_pair(item: RecordLike) -> tuple[str, str]:
    if isinstance(item, AnchorRecord):
        return item.proof_hash, item.payment_id
    if isinstance(item, (tuple, list)) and len(item) == 2:
        return item[0], item[1]
    raise EncodingError(
        f"Invalid record: expected AnchorRecord or (proof_hash, payment_id), got {item!r}"
    )


class AnchorWriter:

    @staticmethod
    def encode_single(proof_hash: str, payment_id: str) -> str:
        """Encode one record as version 1: magic + 01 + hash + id."""
        out = io.BytesIO()
        out.write(MAGIC)
        out.write(bytes([ANCHOR_VERSION_SINGLE]))
        out.write(_pack_record(proof_hash, payment_id))
        return "0x" + out.getvalue().hex()

    @staticmethod
    def encode_batch(records: Iterable[RecordLike]) -> str:
        """Encode 1..255 records as version 2: magic + 02 + count + records.

        Record order is preserved exactly.
        """
        items = [_as_pair(item) for item in records]
        if not items:
            raise EncodingError("Batch must contain at least one record")
        if len(items) > MAX_BATCH_RECORDS:
            raise EncodingError(
                f"Batch of {len(items)} records exceeds maximum {MAX_BATCH_RECORDS} "
                f"(single count byte)"
            )

        out = io.BytesIO()
        out.write(MAGIC)
        out.write(bytes([ANCHOR_VERSION_BATCH, len(items)]))
        for proof_hash, payment_id in items:
            out.write(_pack_record(proof_hash, payment_id))
        return "0x" + out.getvalue().hex()
