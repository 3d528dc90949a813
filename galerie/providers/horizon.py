"""Async client for the Stellar Horizon REST API."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import httpx

from ..config import settings
from ..core.errors import (
    InvalidRequestError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    SubmissionRejectedError,
)
from .base import AccountBalances, LedgerBalance, LedgerProvider


logger = logging.getLogger(__name__)


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("retry-after")
    try:
        return float(value) if value else None
    except ValueError:
        return None


class HorizonLedger(LedgerProvider):
    """Account lookups and transaction submission against a Horizon server."""

    name = "horizon"

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        friendbot_url: Optional[str] = None,
        network: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.horizon_url).rstrip("/")
        self.network = (network or settings.stellar_network).upper()
        self.friendbot_url = friendbot_url if friendbot_url is not None else settings.friendbot_url
        self.timeout_s = timeout_s or settings.ledger_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_s,
            headers={"accept": "application/json"},
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Horizon request timed out: {exc}", provider=self.name) from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Horizon unreachable: {exc}", provider=self.name) from exc

        if response.status_code == 429:
            raise RateLimitedError(
                "Horizon rate limit exceeded",
                retry_after=_retry_after(response),
                provider=self.name,
            )
        return response

    async def ready(self) -> bool:
        return bool(self.base_url)

    async def health_check(self) -> Dict[str, Any]:
        try:
            response = await self._request("GET", "/")
            response.raise_for_status()
            payload = response.json()
            return {
                "status": "healthy",
                "latency_ms": int(response.elapsed.total_seconds() * 1000),
                "network_passphrase": payload.get("network_passphrase"),
            }
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def load_account(self, public_key: str) -> AccountBalances:
        response = await self._request("GET", f"/accounts/{public_key}")
        if response.status_code == 404:
            raise NotFoundError(f"Account {public_key} not found", public_key=public_key)
        if response.status_code == 400:
            raise InvalidRequestError(f"Horizon rejected account id {public_key}", field_name="public_key")
        if response.status_code >= 500:
            raise NetworkError(f"Horizon returned {response.status_code}", provider=self.name)
        response.raise_for_status()

        data = response.json()
        balances = []
        for entry in data.get("balances") or []:
            try:
                amount = Decimal(str(entry.get("balance", "0")))
            except InvalidOperation:
                logger.warning("Skipping unparseable balance entry for %s: %r", public_key, entry)
                continue
            balances.append(
                LedgerBalance(
                    asset_type=entry.get("asset_type", ""),
                    amount=amount,
                    asset_code=entry.get("asset_code"),
                    issuer=entry.get("asset_issuer"),
                )
            )
        return AccountBalances(
            account_id=data.get("account_id") or data.get("id") or public_key,
            balances=balances,
            sequence=data.get("sequence"),
        )

    async def submit_transaction(self, envelope_xdr: str) -> Dict[str, Any]:
        if not envelope_xdr:
            raise InvalidRequestError("Transaction envelope is empty", field_name="xdr")

        response = await self._request("POST", "/transactions", data={"tx": envelope_xdr})
        if response.status_code == 400:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            result_codes = (payload.get("extras") or {}).get("result_codes") or {}
            logger.warning("Transaction rejected by Horizon: %s", result_codes)
            raise SubmissionRejectedError(
                payload.get("title") or "Transaction rejected",
                result_codes=result_codes,
            )
        if response.status_code >= 500:
            raise NetworkError(f"Horizon returned {response.status_code} on submit", provider=self.name)
        response.raise_for_status()

        data = response.json()
        return {
            "hash": data.get("hash"),
            "ledger": data.get("ledger"),
            "successful": data.get("successful", True),
        }

    async def fund_account(self, public_key: str) -> Dict[str, Any]:
        """Create and fund a testnet account through Friendbot."""
        if self.network != "TESTNET" or not self.friendbot_url:
            raise InvalidRequestError(f"Friendbot is only available on testnet, not {self.network}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
                response = await client.get(self.friendbot_url, params={"addr": public_key})
        except httpx.TransportError as exc:
            raise NetworkError(f"Friendbot unreachable: {exc}", provider="friendbot") from exc

        if response.status_code == 429:
            raise RateLimitedError("Friendbot rate limit exceeded", provider="friendbot")
        if response.status_code == 400:
            try:
                detail = response.json().get("detail")
            except ValueError:
                detail = None
            raise InvalidRequestError(detail or f"Friendbot refused to fund {public_key}")
        response.raise_for_status()

        data = response.json()
        logger.info("Funded testnet account %s", public_key)
        return {"hash": data.get("hash"), "ledger": data.get("ledger")}
