"""
Payment Bridge

Turns a "buy" intent into one invocation of the fiat payment widget,
independent of which adapter supplied the session's address.
"""

from __future__ import annotations

import inspect
import logging
from decimal import ROUND_UP, Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..config import settings
from ..core.errors import InvalidRequestError
from ..core.keys import is_valid_public_key
from ..core.session.store import SessionStore
from ..providers.base import PriceProvider
from ..providers.moonpay import MoonPayWidget, PaymentRequest, is_completed_event


logger = logging.getLogger(__name__)

PaymentCallback = Callable[[Dict[str, Any]], Any]

# Headroom for price movement and widget fees when buying XLM for an NFT.
PRICE_BUFFER = Decimal("1.05")
CENT = Decimal("0.01")


def parse_amount(value: Any, field_name: str = "amount") -> Decimal:
    """Coerce ``value`` to a positive, finite Decimal or raise InvalidRequestError."""
    if isinstance(value, bool) or value is None:
        raise InvalidRequestError(f"{field_name} must be a number", field_name=field_name)
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidRequestError(f"{field_name} must be a number", field_name=field_name) from None
    if not amount.is_finite():
        raise InvalidRequestError(f"{field_name} must be finite", field_name=field_name)
    if amount <= 0:
        raise InvalidRequestError(f"{field_name} must be positive", field_name=field_name)
    return amount


class PaymentBridge:
    def __init__(
        self,
        store: SessionStore,
        widget: MoonPayWidget,
        *,
        prices: Optional[PriceProvider] = None,
        refresh_balance: Optional[Callable[[], Awaitable[Any]]] = None,
        fallback_rate: Optional[float] = None,
        fiat_currency: Optional[str] = None,
        crypto_currency: Optional[str] = None,
    ) -> None:
        self.store = store
        self.widget = widget
        self.prices = prices
        self.refresh_balance = refresh_balance
        self.fallback_rate = Decimal(str(fallback_rate if fallback_rate is not None else settings.xlm_usd_fallback_rate))
        self.fiat_currency = fiat_currency or settings.default_fiat_currency
        self.crypto_currency = crypto_currency or settings.default_crypto_currency
        self._callbacks: List[PaymentCallback] = []

    def on_completed(self, callback: PaymentCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def _require_connected(self) -> None:
        if not self.store.session.is_connected:
            raise InvalidRequestError("Connect your wallet first")

    def _resolve_destination(self, destination: Optional[str]) -> str:
        address = (destination or self.store.session.public_key or "").strip()
        if not address:
            raise InvalidRequestError("No destination address available", field_name="destination")
        if not is_valid_public_key(address):
            raise InvalidRequestError("Destination is not a valid Stellar address", field_name="destination")
        return address

    async def buy(
        self,
        amount: Any,
        destination: Optional[str] = None,
        fiat_currency: Optional[str] = None,
        crypto_currency: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Any:
        """
        Open the widget pre-filled with ``amount`` of fiat for ``destination``.

        Every precondition is checked before the widget is touched; the widget
        is invoked once and its failures propagate.
        """
        self._require_connected()
        fiat_amount = parse_amount(amount)
        address = self._resolve_destination(destination)

        request = PaymentRequest(
            destination_address=address,
            fiat_amount=fiat_amount,
            fiat_currency=(fiat_currency or self.fiat_currency).lower(),
            crypto_currency=(crypto_currency or self.crypto_currency).lower(),
            email=email,
        )
        return await self.widget.open(request)

    async def xlm_rate(self, fiat_currency: Optional[str] = None) -> Decimal:
        currency = (fiat_currency or self.fiat_currency).lower()
        if self.prices is not None:
            try:
                price = await self.prices.get_xlm_price(currency)
            except Exception as exc:  # noqa: BLE001
                logger.warning("XLM price lookup failed, using fallback rate: %s", exc)
            else:
                if price is not None and price > 0:
                    return price
        logger.info("Using fallback XLM rate %s %s", self.fallback_rate, currency.upper())
        return self.fallback_rate

    async def buy_nft(
        self,
        price_xlm: Any,
        nft: Optional[Dict[str, Any]] = None,
        destination: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Buy enough XLM, priced in fiat with a small buffer, to pay for an NFT."""
        self._require_connected()
        price = parse_amount(price_xlm, field_name="price_xlm")
        address = self._resolve_destination(destination)

        rate = await self.xlm_rate()
        fiat_amount = (price * rate * PRICE_BUFFER).quantize(CENT, rounding=ROUND_UP)
        logger.info(
            "NFT %s costs %s XLM at %s: buying %s %s",
            (nft or {}).get("id", "?"),
            price,
            rate,
            fiat_amount,
            self.fiat_currency.upper(),
        )
        widget = await self.buy(fiat_amount, destination=address)
        return {
            "price_xlm": str(price),
            "rate": str(rate),
            "fiat_amount": str(fiat_amount),
            "fiat_currency": self.fiat_currency,
            "widget": widget,
        }

    async def handle_completed(self, event: Dict[str, Any]) -> bool:
        """
        Fan a completed-payment event out to subscribers and refresh the balance.

        Returns False (and does nothing) for events that are not completions.
        """
        if not is_completed_event(event):
            logger.debug("Ignoring payment event %s", event.get("type"))
            return False

        logger.info("Payment completed: %s", event.get("type") or "transaction")
        for callback in list(self._callbacks):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:  # noqa: BLE001
                logger.error("Payment callback failed: %s", exc, exc_info=True)

        if self.refresh_balance is not None and self.store.session.is_connected:
            try:
                await self.refresh_balance()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Balance refresh after payment failed: %s", exc)
        return True
