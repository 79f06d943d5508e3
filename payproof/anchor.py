"""
Flare Anchoring — anchor payment proof hashes in EVM transaction data.

Architecture:
    L1 (Flare):  self-send tx, value 0, data = PayProof anchor payload
    Signing:     delegated to the node's managed account (eth_sendTransaction)
    Bridge:      payproof anchor / payproof verify-anchor CLI commands

Zero external dependencies — uses stdlib urllib.request for EVM JSON-RPC.
Clients are constructed explicitly and passed in; nothing is a module-level
singleton, so the codec and its tests never touch the network.
"""

from __future__ import annotations

import json
import logging
import os
import re
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Iterable

from payproof import (
    BASE_TX_GAS,
    DEFAULT_CONFIRMATIONS,
    DEFAULT_POLL_INTERVAL_SECS,
    DEFAULT_RECEIPT_TIMEOUT_SECS,
    ETHER_DECIMALS,
    FLARE_DEFAULT_RPC_URL,
    GAS_PER_DATA_CHAR,
    GWEI_DECIMALS,
)
from payproof._codec import decode, encode_batch, encode_single
from payproof._codec.writer import RecordLike
from payproof.proof import hash_in_payload

logger = logging.getLogger(__name__)

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


class RPCError(Exception):
    """Error communicating with or returned by an EVM JSON-RPC node."""


class AnchorError(Exception):
    """Anchoring transaction could not be submitted or confirmed."""


@dataclass(frozen=True)
class AnchorInfo:
    """Decoded anchor contents plus where and when it landed on chain."""

    tx_hash: str
    proof_hashes: list[str] = field(default_factory=list)
    payment_ids: list[str] = field(default_factory=list)
    timestamp: int = 0
    block_number: int = 0


@dataclass(frozen=True)
class AnchorCost:
    gas_limit: int
    gas_price_gwei: str
    estimated_cost: str


class EVMRPC:
    """Minimal EVM JSON-RPC client using stdlib urllib.

    Usage:
        rpc = EVMRPC.from_env()
        block = rpc.call("eth_blockNumber")
    """

    def __init__(self, url: str, timeout: float = 30) -> None:
        if not url:
            raise ValueError("RPC URL cannot be empty")
        self.url = url
        self.timeout = timeout
        self._id_counter = 0

    @classmethod
    def from_env(cls) -> EVMRPC:
        """Create RPC client from FLARE_RPC_URL, falling back to Flare mainnet."""
        url = os.environ.get("FLARE_RPC_URL", "") or FLARE_DEFAULT_RPC_URL
        return cls(url)

    def call(self, method: str, *params: Any) -> Any:
        """Execute a JSON-RPC call. Returns the 'result' field.

        Raises RPCError on transport or RPC-level errors.
        """
        self._id_counter += 1
        payload = json.dumps({
            "jsonrpc": "2.0",
            "id": self._id_counter,
            "method": method,
            "params": list(params),
        }).encode()

        req = urllib.request.Request(
            self.url,
            data=payload,
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                body = json.loads(resp.read().decode())
        except urllib.error.HTTPError as e:
            try:
                body = json.loads(e.read().decode())
            except Exception:
                raise RPCError(f"HTTP {e.code}: {e.reason}") from e
        except urllib.error.URLError as e:
            raise RPCError(f"Connection failed: {e.reason}") from e
        except Exception as e:
            raise RPCError(f"RPC call failed: {e}") from e

        if not isinstance(body, dict):
            raise RPCError(f"Malformed RPC response: {body!r}")
        if body.get("error"):
            err = body["error"]
            msg = err.get("message", str(err)) if isinstance(err, dict) else str(err)
            raise RPCError(f"RPC error: {msg}")

        return body.get("result")


def format_units(value: int, decimals: int) -> str:
    """Render an integer amount with ``decimals`` places, e.g. wei -> ether.

    Always keeps at least one fractional digit: 10**18 wei -> "1.0".
    """
    sign = "-" if value < 0 else ""
    whole, frac = divmod(abs(value), 10 ** decimals)
    frac_str = str(frac).rjust(decimals, "0").rstrip("0") or "0"
    return f"{sign}{whole}.{frac_str}"


def format_ether(wei: int) -> str:
    return format_units(wei, ETHER_DECIMALS)


def anchor_gas_limit(data_hex: str) -> int:
    """Gas limit for a self-send carrying ``data_hex`` (0x included)."""
    return BASE_TX_GAS + len(data_hex) * GAS_PER_DATA_CHAR


def _quantity(value: Any) -> int:
    """Parse a JSON-RPC hex quantity ("0x1a") into an int. Raises RPCError."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    try:
        return int(value, 16)
    except (TypeError, ValueError) as e:
        raise RPCError(f"Malformed RPC quantity: {value!r}") from e


class AnchorService:
    """Anchor and verify PayProof payloads on Flare.

    Usage:
        service = AnchorService(EVMRPC.from_env(), "0xYourManagedAccount")
        tx_hash = service.anchor_proof_hash(master_hash, payment_id)
        service.verify_anchor(tx_hash, master_hash)
    """

    def __init__(
        self,
        rpc: EVMRPC,
        from_address: str | None = None,
        confirmations: int = DEFAULT_CONFIRMATIONS,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECS,
        timeout: float = DEFAULT_RECEIPT_TIMEOUT_SECS,
    ) -> None:
        if from_address is not None and (
            not isinstance(from_address, str) or not _ADDRESS_RE.match(from_address)
        ):
            raise ValueError(f"Invalid anchor account address: {from_address!r}")
        if confirmations < 1:
            raise ValueError("confirmations must be at least 1")
        self._rpc = rpc
        self.from_address = from_address
        self.confirmations = confirmations
        self.poll_interval = poll_interval
        self.timeout = timeout
        if from_address:
            logger.info("Flare anchor service initialized with account: %s", from_address)

    @classmethod
    def from_env(cls, rpc: EVMRPC | None = None) -> AnchorService:
        """Create the service from environment variables.

        Reads:
            FLARE_RPC_URL        — JSON-RPC endpoint (used when rpc is None)
            FLARE_ANCHOR_ADDRESS — node-managed account that signs anchors
        """
        address = os.environ.get("FLARE_ANCHOR_ADDRESS", "")
        if not address:
            raise AnchorError(
                "FLARE_ANCHOR_ADDRESS not set. "
                "Set it to the node-managed account used for anchoring."
            )
        return cls(rpc or EVMRPC.from_env(), address)

    # --- Anchoring -------------------------------------------------------

    def anchor_proof_hash(self, proof_hash: str, payment_id: str) -> str:
        """Anchor one proof hash. Returns the confirmed transaction hash."""
        logger.info("Anchoring proof hash for payment %s: %s", payment_id, proof_hash)
        data = encode_single(proof_hash, payment_id)
        return self._submit(data, "proof hash")

    def anchor_multiple_hashes(self, records: Iterable[RecordLike]) -> str:
        """Anchor up to 255 (proof_hash, payment_id) records in one transaction."""
        items = list(records)
        logger.info("Anchoring %d proof hashes", len(items))
        data = encode_batch(items)
        return self._submit(data, "proof hashes")

    def _require_account(self) -> str:
        if not self.from_address:
            raise AnchorError("No anchoring account configured")
        return self.from_address

    def _submit(self, data: str, what: str) -> str:
        account = self._require_account()
        try:
            tx_hash = self._rpc.call("eth_sendTransaction", {
                "from": account,
                "to": account,  # self-send
                "value": "0x0",
                "data": data,
                "gas": hex(anchor_gas_limit(data)),
            })
            if not isinstance(tx_hash, str) or not tx_hash:
                raise AnchorError(f"Node returned no transaction hash: {tx_hash!r}")
            logger.info("Anchor transaction sent: %s", tx_hash)
            receipt = self._wait_for_receipt(tx_hash)
        except (RPCError, AnchorError, KeyError, TypeError, ValueError) as e:
            logger.error("Error anchoring %s: %s", what, e)
            raise AnchorError(f"Failed to anchor {what}: {e}") from e

        confirmed = receipt.get("transactionHash", tx_hash)
        logger.info("Anchor transaction confirmed: %s", confirmed)
        return confirmed

    def _wait_for_receipt(self, tx_hash: str) -> dict[str, Any]:
        """Poll until the tx has ``confirmations`` blocks. Raises AnchorError."""
        deadline = time.monotonic() + self.timeout
        while True:
            receipt = self._rpc.call("eth_getTransactionReceipt", tx_hash)
            if receipt is not None and not isinstance(receipt, dict):
                raise AnchorError(f"Malformed receipt for {tx_hash}: {receipt!r}")
            if receipt:
                if _quantity(receipt.get("status", "0x1")) == 0:
                    raise AnchorError(f"Transaction {tx_hash} reverted")
                if self.confirmations == 1:
                    return receipt
                head = _quantity(self._rpc.call("eth_blockNumber"))
                mined = _quantity(receipt["blockNumber"])
                if head - mined + 1 >= self.confirmations:
                    return receipt
            if time.monotonic() >= deadline:
                raise AnchorError(
                    f"Transaction {tx_hash} not confirmed within {self.timeout:g}s"
                )
            time.sleep(self.poll_interval)

    # --- Verification ----------------------------------------------------

    def verify_anchor(self, tx_hash: str, expected_proof_hash: str) -> bool:
        """Verify that a proof hash is anchored in the given transaction.

        Fail-closed: returns False if the node is unreachable, the tx does
        not exist, or its data does not carry the expected hash.
        """
        try:
            tx = self._rpc.call("eth_getTransactionByHash", tx_hash)
        except RPCError:
            logger.exception("Error verifying anchor %s", tx_hash)
            return False

        if not isinstance(tx, dict):
            logger.warning("Transaction not found: %s", tx_hash)
            return False

        payload = decode(tx.get("input", ""))
        return hash_in_payload(payload, expected_proof_hash)

    def get_anchor_info(self, tx_hash: str) -> AnchorInfo | None:
        """Return the anchored hashes, ids, block and timestamp, or None."""
        try:
            tx = self._rpc.call("eth_getTransactionByHash", tx_hash)
            receipt = self._rpc.call("eth_getTransactionReceipt", tx_hash)
            if not tx or not receipt:
                return None

            block_number = _quantity(receipt["blockNumber"])
            block = self._rpc.call("eth_getBlockByNumber", hex(block_number), False)
            payload = decode(tx.get("input", ""))

            return AnchorInfo(
                tx_hash=tx_hash,
                proof_hashes=payload.proof_hashes,
                payment_ids=payload.payment_ids,
                timestamp=_quantity(block["timestamp"]),
                block_number=block_number,
            )
        except (RPCError, KeyError, TypeError, ValueError):
            logger.exception("Error getting anchor info for %s", tx_hash)
            return None

    # --- Account ---------------------------------------------------------

    def get_wallet_balance(self) -> str:
        """Balance of the anchoring account, in ether."""
        wei = _quantity(self._rpc.call("eth_getBalance", self._require_account(), "latest"))
        return format_ether(wei)

    def estimate_anchor_cost(self, proof_hash: str, payment_id: str) -> AnchorCost:
        """Estimate gas and cost of anchoring a single proof hash."""
        data = encode_single(proof_hash, payment_id)
        gas_limit = anchor_gas_limit(data)
        gas_price = _quantity(self._rpc.call("eth_gasPrice"))
        return AnchorCost(
            gas_limit=gas_limit,
            gas_price_gwei=format_units(gas_price, GWEI_DECIMALS),
            estimated_cost=format_ether(gas_price * gas_limit),
        )
