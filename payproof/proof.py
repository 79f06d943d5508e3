"""
Proof hashing — the values PayProof anchors and the membership check on them.

A payment produces several ISO 20022 records; their hashes are folded into a
single master proof hash, which is what goes on chain.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Iterable

from payproof._codec.payload import AnchorPayload
from payproof._codec.layout import EncodingError, normalize_proof_hash


def compute_master_proof_hash(record_hashes: Iterable[str]) -> str:
    """SHA-256 over the record hashes concatenated in order (64 hex chars, no 0x)."""
    hashes = list(record_hashes)
    if not hashes:
        raise ValueError("At least one record hash is required")
    return hashlib.sha256("".join(hashes).encode("utf-8")).hexdigest()


def hash_in_payload(payload: AnchorPayload, proof_hash: str) -> bool:
    """True if ``proof_hash`` is one of the payload's anchored hashes.

    Prefix and case are normalised, so "ab..ab" matches "0xAB..AB".
    A malformed ``proof_hash`` is simply not present, and malformed entries
    in a hand-built payload never match.
    """
    try:
        wanted = normalize_proof_hash(proof_hash)
    except EncodingError:
        return False
    for h in payload.proof_hashes:
        try:
            candidate = normalize_proof_hash(h)
        except EncodingError:
            continue
        if hmac.compare_digest(candidate, wanted):
            return True
    return False
