"""
Balance Poller

Keeps ``Session.balance`` fresh while the session is connected: one query as
soon as a session connects (or switches account), then one every interval.
Results are applied only if the session still belongs to the account that was
queried when the response arrives.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Optional, Set

from ..clock import AsyncioClock, Clock
from ..errors import InvalidRequestError
from .models import Balance, BalanceLine, Session
from .store import BALANCE_POLLER, SessionStore
from ...providers.base import AccountBalances, LedgerProvider


logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 30.0


def to_balance(account: AccountBalances) -> Balance:
    native = Decimal("0")
    lines = []
    for entry in account.balances:
        if entry.is_native:
            native = entry.amount
        elif entry.asset_code and entry.issuer:
            lines.append(BalanceLine(code=entry.asset_code, issuer=entry.issuer, amount=entry.amount))
    return Balance(native=native, lines=tuple(lines))


class BalancePoller:
    def __init__(
        self,
        store: SessionStore,
        ledger: LedgerProvider,
        *,
        clock: Optional[Clock] = None,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.interval = interval_seconds
        self._clock = clock or AsyncioClock()
        self._loop_task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._unsubscribe = None

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self._on_session_change)
        if self._is_live(self.store.session) and not self.running:
            self._restart(first_delay=0)

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._cancel_loop()
        tasks = list(self._inflight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()

    @staticmethod
    def _is_live(session: Session) -> bool:
        return session.is_connected and bool(session.public_key)

    def _on_session_change(self, previous: Session, current: Session) -> None:
        if not self._is_live(current):
            if self.running:
                logger.info("Session disconnected; balance polling stopped")
            self._cancel_loop()
            return
        if not self._is_live(previous) or previous.public_key != current.public_key:
            self._restart(first_delay=0)

    # ---------------------------
    # Scheduling
    # ---------------------------
    def _restart(self, first_delay: float) -> None:
        self._cancel_loop()
        self._loop_task = asyncio.create_task(self._run(first_delay), name="balance-poller")

    def _cancel_loop(self) -> None:
        # In-flight queries are left to finish; the staleness check drops them.
        if self._loop_task is not None and not self._loop_task.done():
            self._loop_task.cancel()
        self._loop_task = None

    async def _run(self, first_delay: float) -> None:
        delay = first_delay
        while True:
            if delay > 0:
                await self._clock.sleep(delay)
            self._spawn_query()
            delay = self.interval

    def _spawn_query(self) -> None:
        public_key = self.store.session.public_key
        if not public_key:
            return
        task = asyncio.create_task(self._poll_once(public_key), name=f"balance-query-{public_key[:6]}")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    # ---------------------------
    # Queries
    # ---------------------------
    async def _poll_once(self, public_key: str) -> None:
        try:
            account = await self.ledger.load_account(public_key)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            # Keep the last known balance; the next tick tries again.
            logger.warning("Balance query for %s failed: %s", public_key, exc)
            return
        self._apply(public_key, account)

    def _apply(self, public_key: str, account: AccountBalances) -> Optional[Balance]:
        session = self.store.session
        if not session.is_connected or session.public_key != public_key:
            logger.info("Discarding stale balance for %s", public_key)
            return None
        balance = to_balance(account)
        self.store.update(BALANCE_POLLER, balance=balance)
        return balance

    async def refresh(self) -> Optional[Balance]:
        """
        Query the balance now and restart the interval timer.

        Raises:
            InvalidRequestError: no connected session
            WalletError: the ledger query failed
        """
        session = self.store.session
        if not self._is_live(session):
            raise InvalidRequestError("No connected wallet to refresh")

        public_key = session.public_key
        self._cancel_loop()
        try:
            account = await self.ledger.load_account(public_key)
            return self._apply(public_key, account)
        finally:
            current = self.store.session
            # A reconnect or account switch during the query already rescheduled polling.
            rescheduled = self._loop_task is not None
            if (
                not rescheduled
                and self._unsubscribe is not None
                and self._is_live(current)
                and current.public_key == public_key
            ):
                self._restart(first_delay=self.interval)
