"""
Payload — in-memory values carried by the anchor data format.

AnchorPayload mirrors the {proofHashes, paymentIds} shape consumers expect,
while keeping each hash paired with its payment id in an AnchorRecord.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


@dataclass(frozen=True)
class AnchorRecord:
    """One (proof hash, payment id) pair as stored in a 64-byte record."""

    proof_hash: str
    payment_id: str


@dataclass(frozen=True)
class AnchorPayload:
    """Ordered records decoded from (or destined for) a transaction's data."""

    records: tuple[AnchorRecord, ...] = ()
    version: int | None = None

    @classmethod
    def empty(cls) -> AnchorPayload:
        return cls()

    @property
    def proof_hashes(self) -> list[str]:
        return [r.proof_hash for r in self.records]

    @property
    def payment_ids(self) -> list[str]:
        return [r.payment_id for r in self.records]

    def is_empty(self) -> bool:
        return not self.records

    def to_dict(self) -> dict[str, object]:
        return {
            "version": self.version,
            "proofHashes": self.proof_hashes,
            "paymentIds": self.payment_ids,
        }

    def __len__(self) -> int:
        return len(self.records)


class DecodeIssue(str, enum.Enum):
    """Why a decode produced an empty payload."""

    TOO_SHORT = "too_short"
    FOREIGN_PREFIX = "foreign_prefix"
    UNKNOWN_VERSION = "unknown_version"
    TRUNCATED = "truncated"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class DecodeResult:
    """Decoded payload plus the tolerated anomaly, if any.

    ``issue`` is None on success. When set, ``payload`` is always empty.
    """

    payload: AnchorPayload
    issue: DecodeIssue | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.issue is None

    @classmethod
    def tolerated(cls, issue: DecodeIssue, detail: str = "") -> DecodeResult:
        return cls(AnchorPayload.empty(), issue, detail)
