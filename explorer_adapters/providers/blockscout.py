"""
Blockscout Explorer Client - REST API v2 integration.

Endpoints used by the address sync pipeline:

    /addresses/{hash}                         account summary
    /addresses/{hash}/counters                activity counters
    /smart-contracts/{hash}                   verified contract (404 = not a contract)
    /tokens/{hash}                            token metadata
    /addresses/{hash}/tokens                  token holdings
    /addresses/{hash}/transactions            standard transactions
    /addresses/{hash}/internal-transactions   internal transactions
    /addresses/{hash}/withdrawals             beacon withdrawals
    /validators/{index}/deposits              beacon deposits

List endpoints are paginated through ``next_page_params``.
"""

import logging
from typing import Any, Optional

import aiohttp

from core.constants import DEFAULT_EXPLORER_URL, DEFAULT_TRANSACTION_LIMIT
from explorer_adapters.base import BaseExplorerClient
from explorer_adapters.exceptions import ParseError
from explorer_adapters.models import (
    AccountInfo,
    AddressCounters,
    ContractInfo,
    TokenHolding,
    TokenInfo,
)


logger = logging.getLogger(__name__)


class BlockscoutClient(BaseExplorerClient):
    """
    Blockscout v2 client.

    Transaction list endpoints are slow upstream and get the heavy
    read timeout; everything else uses the default one.
    """

    DEFAULT_HEAVY_READ_TIMEOUT = 30.0
    HOLDINGS_LIMIT = 1000
    BEACON_LIMIT = 1000

    def __init__(
        self,
        base_url: str = DEFAULT_EXPLORER_URL,
        api_key: Optional[str] = None,
        connect_timeout: float = BaseExplorerClient.DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = BaseExplorerClient.DEFAULT_READ_TIMEOUT,
        heavy_read_timeout: float = DEFAULT_HEAVY_READ_TIMEOUT,
        max_attempts: int = BaseExplorerClient.MAX_ATTEMPTS,
        retry_initial_delay: float = BaseExplorerClient.RETRY_INITIAL_DELAY,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(
            base_url,
            api_key=api_key,
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            max_attempts=max_attempts,
            retry_initial_delay=retry_initial_delay,
            session=session,
        )
        self._heavy_read_timeout = heavy_read_timeout

    @property
    def name(self) -> str:
        return "blockscout"

    async def fetch(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        read_timeout: Optional[float] = None,
    ) -> Any:
        if self._api_key:
            params = {**(params or {}), "apikey": self._api_key}
        return await super().fetch(path, params=params, read_timeout=read_timeout)

    # ─────────────────────────────────────────────────────────────
    # Address endpoints
    # ─────────────────────────────────────────────────────────────

    async def get_address(self, address: str) -> AccountInfo:
        payload = await self.fetch(f"/addresses/{address}")
        return AccountInfo.from_payload(payload)

    async def get_counters(self, address: str) -> AddressCounters:
        payload = await self.fetch(f"/addresses/{address}/counters")
        return AddressCounters.from_payload(payload)

    async def get_smart_contract(self, address: str) -> ContractInfo:
        payload = await self.fetch(f"/smart-contracts/{address}")
        return ContractInfo.from_payload(payload)

    async def get_token(self, address: str) -> TokenInfo:
        payload = await self.fetch(f"/tokens/{address}")
        return TokenInfo.from_payload(payload)

    async def get_token_holdings(self, address: str) -> list[TokenHolding]:
        """
        Token balances held by the address.

        Items that do not decode are dropped with a warning; one bad
        row must not hide every other holding.
        """
        items = await self.fetch_paginated(f"/addresses/{address}/tokens", self.HOLDINGS_LIMIT)
        holdings = []
        for item in items:
            try:
                holdings.append(TokenHolding.from_payload(item))
            except ParseError as e:
                logger.warning(f"[{self.name}] Dropping undecodable holding for {address}: {e}")
        return holdings

    async def get_transactions(
        self,
        address: str,
        limit: int = DEFAULT_TRANSACTION_LIMIT,
    ) -> list[dict[str, Any]]:
        """Most recent standard transactions, raw payloads."""
        return await self.fetch_paginated(
            f"/addresses/{address}/transactions",
            limit,
            read_timeout=self._heavy_read_timeout,
        )

    async def get_internal_transactions(
        self,
        address: str,
        limit: int = DEFAULT_TRANSACTION_LIMIT,
    ) -> list[dict[str, Any]]:
        """Most recent internal transactions, raw payloads."""
        return await self.fetch_paginated(
            f"/addresses/{address}/internal-transactions",
            limit,
            read_timeout=self._heavy_read_timeout,
        )

    # ─────────────────────────────────────────────────────────────
    # Beacon chain endpoints
    # ─────────────────────────────────────────────────────────────

    async def get_withdrawals(self, address: str) -> list[Any]:
        return await self.fetch_paginated(f"/addresses/{address}/withdrawals", self.BEACON_LIMIT)

    async def get_validator_deposits(self, validator: str) -> list[Any]:
        return await self.fetch_paginated(f"/validators/{validator}/deposits", self.BEACON_LIMIT)
