"""
Explorer Adapter Providers.

Concrete upstream clients:
- BlockscoutClient: block explorer REST API v2
- CoinGeckoClient: native coin spot price
"""

from explorer_adapters.providers.blockscout import BlockscoutClient
from explorer_adapters.providers.coingecko import CoinGeckoClient


__all__ = [
    "BlockscoutClient",
    "CoinGeckoClient",
]
