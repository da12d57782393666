"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines the pipeline-wide constants.

- Single source of truth for magic values
- Related constants are grouped
- No business logic here

============================================================
"""

import re


# ============================================================
# ADDRESS FORMAT
# ============================================================

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-f]{40}$")
"""Canonical address form: lower-case hex, 0x prefix, 20 bytes."""

# ============================================================
# UNITS
# ============================================================

NATIVE_DECIMALS = 18
"""Decimals of the native coin (wei -> ETH)."""

MAX_TOKEN_DECIMALS = 255

USD_QUANTUM = "0.0001"
"""Precision of the cached USD valuation."""

# ============================================================
# UPSTREAM DEFAULTS
# ============================================================

DEFAULT_EXPLORER_URL = "https://eth.blockscout.com/api/v2"
DEFAULT_PRICE_API_URL = "https://api.coingecko.com/api/v3"
DEFAULT_NATIVE_COIN_ID = "ethereum"
USER_AGENT = "AddressSync/1.0"

DEFAULT_TRANSACTION_LIMIT = 500

# ============================================================
# SYNC LIFECYCLE
# ============================================================

NOT_FOUND_NOTE = "Address not found on block explorer."

DEFAULT_SYNC_TIMEOUT_SECONDS = 60.0
DEFAULT_PRICE_TTL_SECONDS = 60.0

# ============================================================
# STORAGE LIMITS
# ============================================================

MAX_BIGINT = 2**63 - 1
"""BIGINT column range (block numbers, nonces)."""

MAX_INTERNAL_TX_INDEX = 2**31 - 1
"""INTEGER column range."""
