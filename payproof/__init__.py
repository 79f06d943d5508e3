"""
PayProof — anchor payment proof hashes to Flare via transaction data.

Architecture:
    L1 (Flare):  tx.data = "PAYPROOF" (8 bytes) + version (1) [+ count (1)] + records
    Record:      proof hash (32 bytes) + payment id (32 bytes, NUL-padded UTF-8)
    Bridge:      payproof anchor / payproof verify-anchor CLI commands
"""

__version__ = "0.1.0"

ANCHOR_MAGIC = b"PAYPROOF"
ANCHOR_MAGIC_HEX = ANCHOR_MAGIC.hex()  # "50415950524f4f46"

# Format versions
ANCHOR_VERSION_SINGLE = 1
ANCHOR_VERSION_BATCH = 2

# Fixed widths, in bytes
HASH_SLOT_SIZE = 32
PAYMENT_ID_SLOT_SIZE = 32
RECORD_SIZE = HASH_SLOT_SIZE + PAYMENT_ID_SLOT_SIZE  # 64
HEADER_SIZE = len(ANCHOR_MAGIC) + 1  # magic + version = 9
MAX_BATCH_RECORDS = 255  # single count byte

# Flare network constants
FLARE_DEFAULT_RPC_URL = "https://flare-api.flare.network/ext/bc/C/rpc"
BASE_TX_GAS = 21_000
GAS_PER_DATA_CHAR = 16  # applied per hex char of the 0x-prefixed data string
DEFAULT_CONFIRMATIONS = 1
DEFAULT_POLL_INTERVAL_SECS = 2.0
DEFAULT_RECEIPT_TIMEOUT_SECS = 120.0
ETHER_DECIMALS = 18
GWEI_DECIMALS = 9
