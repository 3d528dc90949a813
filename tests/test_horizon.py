import json
from decimal import Decimal
from urllib.parse import parse_qs

import httpx
import pytest

from galerie.core.errors import (
    InvalidRequestError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    SubmissionRejectedError,
)
from galerie.providers.horizon import HorizonLedger

from fakes import KEY_A, KEY_B


def ledger_with(handler, network="TESTNET"):
    return HorizonLedger(
        base_url="https://horizon.test",
        friendbot_url="https://friendbot.test",
        network=network,
        timeout_s=5,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_load_account_keeps_balance_order():
    def handler(request):
        assert request.url.path == f"/accounts/{KEY_A}"
        return httpx.Response(200, json={
            "account_id": KEY_A,
            "sequence": "123",
            "balances": [
                {"balance": "12.5000000", "asset_type": "credit_alphanum4", "asset_code": "USDC", "asset_issuer": KEY_B},
                {"balance": "100.0000000", "asset_type": "native"},
            ],
        })

    account = await ledger_with(handler).load_account(KEY_A)

    assert account.account_id == KEY_A
    assert account.sequence == "123"
    assert [b.asset_code for b in account.balances] == ["USDC", None]
    assert account.balances[0].issuer == KEY_B
    assert account.balances[1].is_native
    assert account.balances[1].amount == Decimal("100")


@pytest.mark.asyncio
async def test_unknown_account_is_not_found():
    ledger = ledger_with(lambda request: httpx.Response(404, json={"status": 404, "title": "Resource Missing"}))

    with pytest.raises(NotFoundError) as exc_info:
        await ledger.load_account(KEY_A)

    assert exc_info.value.public_key == KEY_A


@pytest.mark.asyncio
async def test_rate_limit_maps_to_rate_limited():
    ledger = ledger_with(lambda request: httpx.Response(429, headers={"Retry-After": "5"}))

    with pytest.raises(RateLimitedError) as exc_info:
        await ledger.load_account(KEY_A)

    assert exc_info.value.retry_after == 5.0


@pytest.mark.asyncio
async def test_transport_failure_is_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError):
        await ledger_with(handler).load_account(KEY_A)


@pytest.mark.asyncio
async def test_submit_transaction_posts_envelope():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"hash": "abc123", "ledger": 42, "successful": True})

    result = await ledger_with(handler).submit_transaction("AAAA+/=")

    assert seen["method"] == "POST"
    assert seen["form"] == {"tx": ["AAAA+/="]}
    assert result == {"hash": "abc123", "ledger": 42, "successful": True}


@pytest.mark.asyncio
async def test_rejected_submission_carries_result_codes():
    body = {
        "title": "Transaction Failed",
        "extras": {"result_codes": {"transaction": "tx_failed", "operations": ["op_underfunded"]}},
    }
    ledger = ledger_with(lambda request: httpx.Response(400, content=json.dumps(body)))

    with pytest.raises(SubmissionRejectedError) as exc_info:
        await ledger.submit_transaction("AAAA")

    assert exc_info.value.result_codes["transaction"] == "tx_failed"
    assert exc_info.value.operation_codes == ["op_underfunded"]


@pytest.mark.asyncio
async def test_empty_envelope_is_rejected_locally():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(InvalidRequestError):
        await ledger_with(handler).submit_transaction("")


@pytest.mark.asyncio
async def test_fund_account_calls_friendbot():
    def handler(request):
        assert request.url.host == "friendbot.test"
        assert request.url.params["addr"] == KEY_A
        return httpx.Response(200, json={"hash": "fund", "ledger": 9})

    assert await ledger_with(handler).fund_account(KEY_A) == {"hash": "fund", "ledger": 9}


@pytest.mark.asyncio
async def test_fund_account_already_funded():
    ledger = ledger_with(lambda request: httpx.Response(400, json={"detail": "createAccountAlreadyExist"}))

    with pytest.raises(InvalidRequestError, match="AlreadyExist"):
        await ledger.fund_account(KEY_A)


@pytest.mark.asyncio
async def test_fund_account_refused_off_testnet():
    def handler(request):
        raise AssertionError("Friendbot must not be called on the public network")

    with pytest.raises(InvalidRequestError, match="only available on testnet"):
        await ledger_with(handler, network="public").fund_account(KEY_A)
