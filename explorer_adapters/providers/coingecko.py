"""
CoinGecko Price Client - Native coin spot price.

Free tier: ``/simple/price`` without a key; a demo key raises the
limits and is sent as the ``x-cg-demo-api-key`` header.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

import aiohttp

from core.constants import DEFAULT_NATIVE_COIN_ID, DEFAULT_PRICE_API_URL
from explorer_adapters.base import BaseExplorerClient
from explorer_adapters.exceptions import ParseError
from explorer_adapters.models import require_object


logger = logging.getLogger(__name__)


class CoinGeckoClient(BaseExplorerClient):
    """CoinGecko simple-price client."""

    def __init__(
        self,
        base_url: str = DEFAULT_PRICE_API_URL,
        api_key: Optional[str] = None,
        connect_timeout: float = BaseExplorerClient.DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = BaseExplorerClient.DEFAULT_READ_TIMEOUT,
        max_attempts: int = BaseExplorerClient.MAX_ATTEMPTS,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(
            base_url,
            api_key=api_key,
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            max_attempts=max_attempts,
            session=session,
        )

    @property
    def name(self) -> str:
        return "coingecko"

    def _get_default_headers(self) -> dict[str, str]:
        headers = super()._get_default_headers()
        if self._api_key:
            headers["x-cg-demo-api-key"] = self._api_key
        return headers

    async def get_simple_price(
        self,
        coin_id: str = DEFAULT_NATIVE_COIN_ID,
        vs_currency: str = "usd",
    ) -> Optional[Decimal]:
        """
        Spot price of ``coin_id`` in ``vs_currency``.

        Returns:
            Exact Decimal price, or None when the coin is not listed

        Raises:
            ParseError: If the quoted price is not a number
        """
        payload = await self.fetch(
            "/simple/price",
            params={"ids": coin_id, "vs_currencies": vs_currency},
        )
        data = require_object(payload, "Price")
        quote = data.get(coin_id)
        if not isinstance(quote, dict) or quote.get(vs_currency) is None:
            logger.warning(f"[{self.name}] No {vs_currency} quote for {coin_id}")
            return None

        raw = quote[vs_currency]
        try:
            # str() keeps the JSON literal's digits rather than binary float noise
            return Decimal(str(raw))
        except InvalidOperation as e:
            raise ParseError(
                message=f"Price for {coin_id} is not numeric",
                adapter_name=self.name,
                raw_data=raw,
                original_error=e,
            ) from e
