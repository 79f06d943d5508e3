"""
Internal anchor-data codec — packs proof hashes and payment ids into tx data.

The wire format (magic-prefixed, versioned, fixed-width records) is what
PayProof writes into the data field of a Flare self-send transaction.
Encoding is strict, decoding is lenient: anchored data lives on an immutable
ledger, so the reader must survive any historical or foreign payload.

Format: "PAYPROOF" + 01 + record            (single)
        "PAYPROOF" + 02 + count + records   (batch)
"""

from payproof._codec.layout import EncodingError, MAGIC, SUPPORTED_VERSIONS
from payproof._codec.payload import AnchorPayload, AnchorRecord, DecodeIssue, DecodeResult
from payproof._codec.writer import AnchorWriter
from payproof._codec.reader import AnchorReader

encode_single = AnchorWriter.encode_single
encode_batch = AnchorWriter.encode_batch
decode = AnchorReader.decode
decode_result = AnchorReader.decode_result
is_anchor_data = AnchorReader.is_anchor_data
