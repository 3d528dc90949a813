from decimal import Decimal

import httpx
import pytest

from galerie.providers.coingecko import CoingeckoProvider


@pytest.mark.asyncio
async def test_get_xlm_price():
    def handler(request):
        assert request.url.path == "/api/v3/simple/price"
        assert request.url.params["ids"] == "stellar"
        assert request.url.params["vs_currencies"] == "eur"
        return httpx.Response(200, json={"stellar": {"eur": 0.0987}})

    provider = CoingeckoProvider(transport=httpx.MockTransport(handler))

    assert await provider.get_xlm_price("EUR") == Decimal("0.0987")


@pytest.mark.asyncio
async def test_missing_quote_returns_none():
    provider = CoingeckoProvider(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})))

    assert await provider.get_xlm_price() is None


@pytest.mark.asyncio
async def test_server_errors_propagate():
    provider = CoingeckoProvider(transport=httpx.MockTransport(lambda request: httpx.Response(500)))

    with pytest.raises(httpx.HTTPStatusError):
        await provider.get_xlm_price()
