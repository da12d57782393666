"""
Explorer Adapters Package - Upstream HTTP data layer.

Typed GET clients for the block explorer and the price oracle.

Features:
- Bounded connect/read timeouts, heavier read budget for list endpoints
- One error taxonomy for every failure
- Retries for transient failures only
- Payloads decoded once into typed models

Quick Start:
    from explorer_adapters import BlockscoutClient, NotFoundError

    async def describe(address: str):
        async with BlockscoutClient() as explorer:
            account = await explorer.get_address(address)
            try:
                contract = await explorer.get_smart_contract(address)
            except NotFoundError:
                contract = None  # not a verified contract
            return account, contract

Error Taxonomy:
- NotFoundError: HTTP 404, a valid "absent" answer for secondary data
- RateLimitError: HTTP 429
- ApiError: other HTTP errors
- NetworkError: transport failures and timeouts
- ParseError: undecodable body
"""

from explorer_adapters.base import BaseExplorerClient
from explorer_adapters.exceptions import (
    ApiError,
    ExplorerAdapterError,
    NetworkError,
    NotFoundError,
    ParseError,
    RateLimitError,
)
from explorer_adapters.models import (
    AccountInfo,
    AdapterHealth,
    AdapterStatus,
    AddressCounters,
    ContractInfo,
    PagedItems,
    TokenHolding,
    TokenInfo,
    ValidatorInfo,
)
from explorer_adapters.providers import BlockscoutClient, CoinGeckoClient


__all__ = [
    # Base
    "BaseExplorerClient",
    # Providers
    "BlockscoutClient",
    "CoinGeckoClient",
    # Models
    "AccountInfo",
    "AdapterHealth",
    "AdapterStatus",
    "AddressCounters",
    "ContractInfo",
    "PagedItems",
    "TokenHolding",
    "TokenInfo",
    "ValidatorInfo",
    # Exceptions
    "ApiError",
    "ExplorerAdapterError",
    "NetworkError",
    "NotFoundError",
    "ParseError",
    "RateLimitError",
]
