"""Build the configured adapters, highest precedence first."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from ...config import Settings
from ...providers.base import IdentityProvider, LedgerProvider, WalletExtension
from ...storage.identity import IdentityRecords, KeyValueStore
from ..clock import Clock
from .base import ProviderAdapter
from .direct_wallet import DirectWalletAdapter
from .legacy_popup import LegacyPopupAdapter
from .popup_identity import EnvelopeSigner, PopupIdentityAdapter


logger = logging.getLogger(__name__)

def build_adapters(
    settings: Settings,
    store: KeyValueStore,
    *,
    ledger: LedgerProvider,
    identity: Optional[IdentityProvider] = None,
    extension: Optional[WalletExtension] = None,
    signer: Optional[EnvelopeSigner] = None,
    clock: Optional[Clock] = None,
) -> List[ProviderAdapter]:
    """
    Instantiate every enabled adapter in precedence order.

    Popup adapters are skipped when no identity SDK is available; the direct
    wallet adapter always works because manual account entry needs only the
    ledger.
    """
    lifecycle = dict(
        clock=clock,
        init_timeout_seconds=settings.adapter_init_timeout_seconds,
        max_retries=settings.adapter_max_retries,
        retry_base_delay_seconds=settings.adapter_retry_base_delay_seconds,
    )

    def records_for(adapter_cls, owner: str) -> IdentityRecords:
        return IdentityRecords(store, owner, adapter_cls.record_fields)

    builders: Dict[str, Callable[[], Optional[ProviderAdapter]]] = {
        "legacy-popup": lambda: (
            LegacyPopupAdapter(
                identity,
                records_for(LegacyPopupAdapter, "legacy-popup"),
                signer=signer,
                **lifecycle,
            )
            if identity is not None
            else None
        ),
        "direct-wallet": lambda: DirectWalletAdapter(
            records_for(DirectWalletAdapter, "direct-wallet"),
            ledger,
            extension=extension,
            network=settings.stellar_network,
            **lifecycle,
        ),
        "popup-identity": lambda: (
            PopupIdentityAdapter(
                identity,
                records_for(PopupIdentityAdapter, "popup-identity"),
                signer=signer,
                **lifecycle,
            )
            if identity is not None
            else None
        ),
    }

    adapters: List[ProviderAdapter] = []
    for adapter_id in settings.ordered_adapters():
        adapter = builders[adapter_id]()
        if adapter is None:
            logger.info("Skipping %s adapter: no identity SDK available", adapter_id)
            continue
        adapters.append(adapter)
    return adapters
