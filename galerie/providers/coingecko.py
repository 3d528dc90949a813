import asyncio
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from ..config import settings
from .base import PriceProvider


class CoingeckoProvider(PriceProvider):
    """Coingecko API provider for the XLM price"""

    name = "coingecko"
    timeout_s = 15
    coin_id = "stellar"

    def __init__(self, *, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = settings.coingecko_api_key
        self.base_url = "https://api.coingecko.com/api/v3"
        self._transport = transport

    def _build_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.api_key:
            headers["X-CG-Demo-API-Key"] = self.api_key
        return headers

    async def ready(self) -> bool:
        return True  # API key is optional for basic tier

    async def health_check(self) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.get(
                    f"{self.base_url}/ping",
                    headers=self._build_headers(),
                    timeout=self.timeout_s
                )
                response.raise_for_status()
                return {"status": "healthy", "latency_ms": int(response.elapsed.total_seconds() * 1000)}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def get_xlm_price(self, vs_currency: str = "usd") -> Optional[Decimal]:
        """Get the XLM price in ``vs_currency``; None when Coingecko has no quote"""
        currency = vs_currency.lower()
        params = {
            "ids": self.coin_id,
            "vs_currencies": currency,
        }

        async with httpx.AsyncClient(transport=self._transport) as client:
            for attempt in range(2):
                try:
                    response = await client.get(
                        f"{self.base_url}/simple/price",
                        headers=self._build_headers(),
                        params=params,
                        timeout=self.timeout_s
                    )
                    response.raise_for_status()
                    break
                except httpx.HTTPStatusError as exc:
                    if exc.response.status_code == 429 and attempt == 0:
                        await asyncio.sleep(2)
                        continue
                    raise
            data = response.json()

        price = (data.get(self.coin_id) or {}).get(currency)
        if price is None:
            return None
        return Decimal(str(price))
