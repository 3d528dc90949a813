"""
Unifying Reconciler

Combines every adapter's state into the single logical Session using a fixed
precedence order. Recomputation is synchronous and pure: it runs inside the
adapter notification that triggered it, so two recomputations never interleave.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional

from .models import ConnectionSource, Session
from .store import RECONCILER, SessionStore

if TYPE_CHECKING:
    from ..adapters.base import ProviderAdapter


logger = logging.getLogger(__name__)

# Highest precedence first. The legacy popup path wins so that sessions created
# by the older integration keep their identity after the newer adapters load.
DEFAULT_PRECEDENCE = (
    ConnectionSource.LEGACY_POPUP,
    ConnectionSource.DIRECT_WALLET,
    ConnectionSource.POPUP_IDENTITY,
)


def compute_session(adapters: Iterable["ProviderAdapter"], current: Session) -> Session:
    """
    Derive the session from adapter states, given in precedence order.

    - identity comes from the highest-precedence connected adapter
    - is_connected is the OR of every adapter's connected flag
    - with nothing connected, a remembered public key is kept (source none)
    - the balance survives only while the public key is unchanged
    """
    ordered = list(adapters)
    connected = [adapter for adapter in ordered if adapter.is_connected and adapter.get_public_key()]

    if connected:
        winner = connected[0]
        public_key = winner.get_public_key()
        source = winner.source
        distinct = {adapter.get_public_key() for adapter in connected}
        if len(distinct) > 1:
            logger.warning(
                "Adapters report different accounts; using %s from %s (others: %s)",
                public_key,
                source.value,
                ", ".join(
                    f"{adapter.id}={adapter.get_public_key()}"
                    for adapter in connected[1:]
                    if adapter.get_public_key() != public_key
                ),
            )
    else:
        remembered = next((adapter.get_public_key() for adapter in ordered if adapter.get_public_key()), None)
        public_key = remembered
        source = ConnectionSource.NONE

    balance = current.balance if public_key == current.public_key else None
    return Session(
        public_key=public_key,
        is_connected=any(adapter.is_connected for adapter in ordered),
        connection_source=source,
        balance=balance,
    )


class UnifyingReconciler:
    """Subscribes to adapters and writes the combined session into the store."""

    def __init__(
        self,
        store: SessionStore,
        adapters: Iterable["ProviderAdapter"],
        precedence: Iterable[ConnectionSource] = DEFAULT_PRECEDENCE,
    ) -> None:
        self.store = store
        rank: Dict[ConnectionSource, int] = {source: index for index, source in enumerate(precedence)}
        # Sources missing from the precedence list rank last, keeping their given order.
        self.adapters: List["ProviderAdapter"] = sorted(
            adapters,
            key=lambda adapter: rank.get(adapter.source, len(rank)),
        )
        self._unsubscribers: List[Callable[[], None]] = []

    def start(self) -> Session:
        if not self._unsubscribers:
            for adapter in self.adapters:
                self._unsubscribers.append(adapter.subscribe(self._on_adapter_change))
        return self.recompute()

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    def _on_adapter_change(self, adapter: "ProviderAdapter") -> None:
        logger.debug("Adapter %s changed: %s", adapter.id, adapter.get_status().value)
        self.recompute()

    def recompute(self) -> Session:
        try:
            current = self.store.session
            computed = compute_session(self.adapters, current)
            if computed == current:
                return current
            if computed.public_key is None and not computed.is_connected:
                return self.store.reset(RECONCILER)
            return self.store.update(
                RECONCILER,
                public_key=computed.public_key,
                is_connected=computed.is_connected,
                connection_source=computed.connection_source,
                balance=computed.balance,
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("Session recompute failed: %s", exc, exc_info=True)
            return self.store.session

    def adapter_for(self, source: ConnectionSource) -> Optional["ProviderAdapter"]:
        return next((adapter for adapter in self.adapters if adapter.source == source), None)

    def active_adapter(self) -> Optional["ProviderAdapter"]:
        """The adapter that supplied the current identity, if connected."""
        return self.adapter_for(self.store.session.connection_source)
