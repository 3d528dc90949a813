"""
MoonPay fiat on-ramp widget.

The widget is opened by URL: the buyer's wallet address and the fiat amount
are pre-filled as query parameters and, when a secret key is configured, the
query string is signed so MoonPay accepts the pre-filled wallet address.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import inspect
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote, urlencode

from ..config import settings
from ..core.errors import NotReadyError


logger = logging.getLogger(__name__)

WidgetLauncher = Callable[[str], Any]

SUCCESS_EVENT_TYPES = frozenset({
    "moonpay_transaction_success",
    "moonpay_transaction_completed",
    "moonpay_payment_complete",
})
SUCCESS_STATUSES = frozenset({"completed", "success"})


@dataclass(frozen=True)
class PaymentRequest:
    """What the widget is asked to do: buy ``crypto_currency`` for ``fiat_amount``."""
    destination_address: str
    fiat_amount: Decimal
    fiat_currency: str = "usd"
    crypto_currency: str = "xlm"
    email: Optional[str] = None


def _return_url(url: str) -> str:
    return url


class MoonPayWidget:
    name = "moonpay"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        redirect_url: Optional[str] = None,
        launcher: Optional[WidgetLauncher] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.moonpay_api_key
        self.secret_key = secret_key if secret_key is not None else settings.moonpay_secret_key
        self.base_url = (base_url or settings.moonpay_widget_base_url).rstrip("/")
        self.redirect_url = redirect_url if redirect_url is not None else settings.moonpay_redirect_url
        # Server-side there is no window to open; the URL is handed back to the client.
        self.launcher = launcher or _return_url

    async def ready(self) -> bool:
        return bool(self.api_key)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "MoonPay API key not configured"}
        return {"status": "healthy", "signed_urls": bool(self.secret_key)}

    def build_url(self, request: PaymentRequest) -> str:
        params: Dict[str, str] = {
            "apiKey": self.api_key,
            "currencyCode": request.crypto_currency.lower(),
            "walletAddress": request.destination_address,
            "baseCurrencyAmount": format(request.fiat_amount, "f"),
            "baseCurrencyCode": request.fiat_currency.lower(),
        }
        if request.email:
            params["email"] = request.email
        if self.redirect_url:
            params["redirectURL"] = self.redirect_url

        query = "?" + urlencode(params, quote_via=quote)
        if self.secret_key:
            query += "&signature=" + quote(self.sign_query(query), safe="")
        return f"{self.base_url}{query}"

    def sign_query(self, query: str) -> str:
        digest = hmac.new(self.secret_key.encode(), query.encode(), hashlib.sha256).digest()
        return base64.b64encode(digest).decode()

    async def open(self, request: PaymentRequest) -> Any:
        """Invoke the launcher once with the widget URL. Failures propagate."""
        if not self.api_key:
            raise NotReadyError("MoonPay API key is not configured", adapter=self.name)
        url = self.build_url(request)
        logger.info(
            "Opening MoonPay widget: %s %s -> %s for %s",
            request.fiat_amount,
            request.fiat_currency.upper(),
            request.crypto_currency.upper(),
            request.destination_address,
        )
        result = self.launcher(url)
        if inspect.isawaitable(result):
            result = await result
        return result


def verify_webhook_signature(body: bytes, signature: Optional[str], secret: Optional[str] = None) -> bool:
    """
    Check a webhook body against its hex HMAC-SHA256 signature.

    Fails closed: a missing secret or signature never verifies.
    """
    secret = secret if secret is not None else settings.moonpay_webhook_secret
    if not secret or not signature:
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected.encode(), signature.strip().lower().encode())


def is_completed_event(payload: Dict[str, Any]) -> bool:
    """True for widget messages and webhook bodies that report a finished purchase."""
    if payload.get("type") in SUCCESS_EVENT_TYPES:
        return True
    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    status = str(data.get("transactionStatus") or data.get("status") or "").lower()
    return status in SUCCESS_STATUSES
