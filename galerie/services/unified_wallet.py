"""
Unified wallet facade.

Wires the session store, the provider adapters, the reconciler, the balance
poller and the payment bridge together, and exposes the operations the rest of
the marketplace uses without caring which provider produced the session.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from ..config import Settings, settings as default_settings
from ..core.adapters import ProviderAdapter, build_adapters
from ..core.adapters.popup_identity import EnvelopeSigner
from ..core.clock import Clock
from ..core.errors import InvalidRequestError, NotReadyError
from ..core.keys import format_address
from ..core.session import (
    AdapterStatus,
    Balance,
    BalancePoller,
    ConnectionSource,
    Session,
    SessionStore,
    UnifyingReconciler,
)
from ..providers.base import IdentityProvider, LedgerProvider, PriceProvider, WalletExtension
from ..providers.coingecko import CoingeckoProvider
from ..providers.horizon import HorizonLedger
from ..providers.moonpay import MoonPayWidget
from ..storage.identity import KeyValueStore, build_store
from .payment_bridge import PaymentBridge


logger = logging.getLogger(__name__)


class UnifiedWallet:
    """One logical wallet session over every enabled identity/wallet provider."""

    def __init__(
        self,
        *,
        config: Optional[Settings] = None,
        ledger: Optional[LedgerProvider] = None,
        identity: Optional[IdentityProvider] = None,
        extension: Optional[WalletExtension] = None,
        signer: Optional[EnvelopeSigner] = None,
        widget: Optional[MoonPayWidget] = None,
        prices: Optional[PriceProvider] = None,
        key_store: Optional[KeyValueStore] = None,
        clock: Optional[Clock] = None,
        adapters: Optional[Iterable[ProviderAdapter]] = None,
    ) -> None:
        self.config = config or default_settings
        self.ledger = ledger or HorizonLedger()
        self.store = SessionStore()
        self.key_store = key_store or build_store(self.config.identity_store_path)

        if adapters is None:
            adapters = build_adapters(
                self.config,
                self.key_store,
                ledger=self.ledger,
                identity=identity,
                extension=extension,
                signer=signer,
                clock=clock,
            )
        self.adapters: List[ProviderAdapter] = list(adapters)

        self.reconciler = UnifyingReconciler(
            self.store,
            self.adapters,
            precedence=[ConnectionSource(item) for item in self.config.adapter_precedence],
        )
        self.poller = BalancePoller(
            self.store,
            self.ledger,
            clock=clock,
            interval_seconds=self.config.balance_poll_interval_seconds,
        )
        self.payments = PaymentBridge(
            self.store,
            widget or MoonPayWidget(),
            prices=prices or CoingeckoProvider(),
            refresh_balance=self.refresh_balance,
        )
        self._started = False

    @property
    def session(self) -> Session:
        return self.store.session

    # ---------------------------
    # Lifecycle
    # ---------------------------
    async def start(self) -> Session:
        """Initialize every adapter concurrently; the poller follows the session."""
        if self._started:
            return self.session
        self._started = True
        self.reconciler.start()
        self.poller.start()
        statuses = await asyncio.gather(*(adapter.initialize() for adapter in self.adapters))
        logger.info(
            "Wallet adapters initialized: %s",
            ", ".join(f"{adapter.id}={status.value}" for adapter, status in zip(self.adapters, statuses)),
        )
        return self.session

    async def stop(self) -> None:
        await self.poller.stop()
        self.reconciler.stop()
        for adapter in self.adapters:
            await adapter.close()
        self._started = False

    # ---------------------------
    # Adapter access
    # ---------------------------
    def adapter(self, source: Union[str, ConnectionSource]) -> ProviderAdapter:
        try:
            wanted = ConnectionSource(source)
        except ValueError:
            raise InvalidRequestError(f"Unknown wallet provider: {source}", field_name="source") from None
        adapter = self.reconciler.adapter_for(wanted)
        if adapter is None:
            raise InvalidRequestError(f"Wallet provider {wanted.value} is not enabled", field_name="source")
        return adapter

    def adapter_states(self) -> List[Dict[str, Any]]:
        return [adapter.snapshot() for adapter in self.reconciler.adapters]

    # ---------------------------
    # Session operations
    # ---------------------------
    async def connect(self, source: Union[str, ConnectionSource], **kwargs: Any) -> Session:
        adapter = self.adapter(source)
        if adapter.get_status() == AdapterStatus.UNINITIALIZED and not adapter.retry_pending:
            # After logout the adapter is back to uninitialized; run the handshake again.
            await adapter.initialize()
        await adapter.connect(**kwargs)
        return self.session

    async def logout(self) -> Session:
        for adapter in self.adapters:
            if adapter.is_connected or adapter.get_public_key():
                await adapter.disconnect()
        self.reconciler.recompute()
        logger.info("Wallet session cleared")
        return self.session

    async def retry(self, source: Union[str, ConnectionSource]) -> AdapterStatus:
        return await self.adapter(source).retry()

    async def revalidate(self) -> Session:
        """Re-check each provider's view of its connection (e.g. extension unplugged)."""
        for adapter in self.adapters:
            await adapter.revalidate()
        return self.session

    async def refresh_balance(self) -> Optional[Balance]:
        return await self.poller.refresh()

    def format_address(self) -> str:
        return format_address(self.session.public_key)

    async def sign_and_submit(self, envelope_xdr: str) -> Dict[str, Any]:
        """Sign with the adapter that supplied the session identity, then submit."""
        if not self.session.is_connected:
            raise InvalidRequestError("Connect your wallet first")
        adapter = self.reconciler.active_adapter()
        if adapter is None:
            raise NotReadyError("No connected adapter can sign for this session")

        signed = await adapter.sign_transaction(envelope_xdr, self.config.network_passphrase)
        result = await self.ledger.submit_transaction(signed)
        logger.info("Transaction %s submitted via %s", result.get("hash"), adapter.id)
        try:
            await self.refresh_balance()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Balance refresh after submission failed: %s", exc)
        return result
