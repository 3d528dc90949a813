"""
Provider adapter contract.

Each adapter wraps one external identity/wallet SDK behind the same capability
set and runs its own initialization state machine:

    uninitialized -> initializing -> ready
                                  -> rate-limited -> initializing (after backoff)
                                  -> uninitialized (timed out, retry scheduled)
                                  -> error (retry cap reached or fatal failure)

Lifecycle failures are absorbed into ``AdapterState``; callers observe state.
Operation failures (connect, sign) are raised to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from ..clock import AsyncioClock, Clock, run_with_timeout
from ..errors import (
    ErrorCategory,
    InvalidRequestError,
    NetworkError,
    NotReadyError,
    RateLimitedError,
    WalletError,
    classify_error,
)
from ..session.models import AdapterState, AdapterStatus, ConnectionSource
from ...storage.identity import CONNECTION_METHOD, PUBLIC_KEY, IdentityRecords


AdapterListener = Callable[["ProviderAdapter"], None]


class InvalidTransitionError(RuntimeError):
    def __init__(self, from_state: AdapterStatus, to_state: AdapterStatus):
        super().__init__(f"Invalid adapter transition from {from_state.value} to {to_state.value}")
        self.from_state = from_state
        self.to_state = to_state


class ProviderAdapter(ABC):
    """Base class for the popup-identity, direct-wallet and legacy-popup adapters."""

    source: ConnectionSource = ConnectionSource.NONE
    record_fields: Tuple[str, ...] = (PUBLIC_KEY, CONNECTION_METHOD)

    # ready -> uninitialized is deliberately absent; only disconnect() performs it.
    TRANSITIONS: Dict[AdapterStatus, Set[AdapterStatus]] = {
        AdapterStatus.UNINITIALIZED: {AdapterStatus.INITIALIZING},
        AdapterStatus.INITIALIZING: {
            AdapterStatus.READY,
            AdapterStatus.RATE_LIMITED,
            AdapterStatus.UNINITIALIZED,
            AdapterStatus.ERROR,
        },
        AdapterStatus.RATE_LIMITED: {AdapterStatus.INITIALIZING},
        AdapterStatus.READY: set(),
        AdapterStatus.ERROR: {AdapterStatus.UNINITIALIZED},
    }

    def __init__(
        self,
        records: IdentityRecords,
        *,
        clock: Optional[Clock] = None,
        init_timeout_seconds: float = 15.0,
        max_retries: int = 3,
        retry_base_delay_seconds: float = 2.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.state = AdapterState()
        self.records = records
        self.logger = logger or logging.getLogger(f"{__name__}.{self.id}")
        self._clock = clock or AsyncioClock()
        self._init_timeout = init_timeout_seconds
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay_seconds
        self._listeners: List[AdapterListener] = []
        self._initializing = False
        self._retry_task: Optional[asyncio.Task] = None

    # ---------------------------
    # Read-only accessors
    # ---------------------------
    @property
    def id(self) -> str:
        return self.source.value

    @property
    def is_connected(self) -> bool:
        return self.state.connected

    def get_status(self) -> AdapterStatus:
        return self.state.status

    def get_public_key(self) -> Optional[str]:
        return self.state.public_key

    @property
    def retry_pending(self) -> bool:
        return self._retry_task is not None and not self._retry_task.done()

    def snapshot(self) -> Dict[str, Any]:
        data = self.state.to_dict()
        data["id"] = self.id
        data["retryPending"] = self.retry_pending
        return data

    # ---------------------------
    # Subscription
    # ---------------------------
    def subscribe(self, listener: AdapterListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as exc:  # noqa: BLE001
                self.logger.error("Adapter listener failed: %s", exc, exc_info=True)

    def _transition(self, to_state: AdapterStatus) -> None:
        from_state = self.state.status
        if to_state == from_state:
            return
        if to_state not in self.TRANSITIONS.get(from_state, set()):
            raise InvalidTransitionError(from_state, to_state)
        self.state.status = to_state
        self.state.history.append((from_state, to_state))
        self.logger.debug("%s: %s -> %s", self.id, from_state.value, to_state.value)

    # ---------------------------
    # Lifecycle
    # ---------------------------
    async def initialize(self) -> AdapterStatus:
        """
        Run the SDK handshake once.

        Returns immediately when a handshake is in flight, a retry is scheduled,
        the adapter is already ready, or it has given up (use ``retry()``).
        """
        status = self.state.status
        if self._initializing or self.retry_pending:
            return status
        if status in (AdapterStatus.INITIALIZING, AdapterStatus.READY, AdapterStatus.ERROR):
            return status

        self._initializing = True
        try:
            self._transition(AdapterStatus.INITIALIZING)
            self._notify()
            try:
                await run_with_timeout(self._clock, self._handshake(), self._init_timeout)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                if self._superseded():
                    self.logger.info("%s handshake failed after disconnect; ignoring: %s", self.id, exc)
                else:
                    self._handle_init_failure(exc)
            else:
                if self._superseded():
                    # disconnect() ran mid-handshake; whatever the handshake restored is stale.
                    self.logger.info("%s disconnected during handshake; discarding result", self.id)
                    self._discard_session()
                else:
                    self.state.retry_count = 0
                    self.state.last_error = None
                    self._transition(AdapterStatus.READY)
                    self.logger.info("%s initialized", self.id)
            self._notify()
        finally:
            self._initializing = False
        return self.state.status

    def _superseded(self) -> bool:
        return self.state.status != AdapterStatus.INITIALIZING

    def _handle_init_failure(self, exc: BaseException) -> None:
        context = classify_error(exc)
        self.state.last_error = str(exc) or exc.__class__.__name__
        rate_limited = context.category in (ErrorCategory.RATE_LIMIT, ErrorCategory.NETWORK)
        timed_out = context.category == ErrorCategory.TIMEOUT

        if not (rate_limited or timed_out):
            self.logger.error("%s initialization failed: %s", self.id, exc)
            self._transition(AdapterStatus.ERROR)
            return

        if self.state.retry_count >= self._max_retries:
            self.logger.error(
                "%s initialization failed after %d retries: %s",
                self.id,
                self.state.retry_count,
                exc,
            )
            self._transition(AdapterStatus.ERROR)
            return

        delay = (2 ** self.state.retry_count) * self._retry_base_delay
        self.state.retry_count += 1
        self._transition(AdapterStatus.RATE_LIMITED if rate_limited else AdapterStatus.UNINITIALIZED)
        self.logger.warning(
            "%s initialization %s; retry %d/%d in %.1fs",
            self.id,
            "rate limited" if rate_limited else "timed out",
            self.state.retry_count,
            self._max_retries,
            delay,
        )
        self._retry_task = asyncio.create_task(self._retry_after(delay), name=f"{self.id}-init-retry")

    async def _retry_after(self, delay: float) -> None:
        await self._clock.sleep(delay)
        self._retry_task = None
        if self.state.status in (AdapterStatus.RATE_LIMITED, AdapterStatus.UNINITIALIZED):
            await self.initialize()

    async def retry(self) -> AdapterStatus:
        """User-triggered re-initialization (the "Retry" action on the warning banner)."""
        self._cancel_retry()
        if self.state.status == AdapterStatus.ERROR:
            self._transition(AdapterStatus.UNINITIALIZED)
        self.state.retry_count = 0
        self.state.last_error = None
        self._notify()
        return await self.initialize()

    def _cancel_retry(self) -> None:
        if self._retry_task is not None and not self._retry_task.done():
            self._retry_task.cancel()
        self._retry_task = None

    async def close(self) -> None:
        task = self._retry_task
        self._cancel_retry()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ---------------------------
    # Operations
    # ---------------------------
    async def connect(self, **kwargs: Any) -> str:
        """
        Establish a session through this adapter.

        Raises:
            NotReadyError: adapter is not ready (``rate_limited`` tells why)
            WalletError: provider-specific failure
        """
        if self.state.status != AdapterStatus.READY:
            raise NotReadyError(
                f"{self.id} is not ready (status={self.state.status.value})",
                adapter=self.id,
                rate_limited=self.state.is_rate_limited,
            )
        try:
            public_key, method = await self._connect(**kwargs)
        except Exception as exc:
            self.state.last_error = str(exc) or exc.__class__.__name__
            self._notify()
            translated = self._translate(exc)
            if translated is exc:
                raise
            raise translated from exc

        self._restore(public_key, method)
        self.logger.info("%s connected via %s", self.id, method)
        self._notify()
        return public_key

    async def disconnect(self) -> None:
        """Clear local state and persisted records. Never raises."""
        self._cancel_retry()
        try:
            await self._disconnect()
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("%s provider logout failed: %s", self.id, exc)
        self._discard_session()
        self.state.retry_count = 0
        if self.state.status != AdapterStatus.UNINITIALIZED:
            # Logout is the one path allowed to leave "ready".
            self.state.history.append((self.state.status, AdapterStatus.UNINITIALIZED))
            self.state.status = AdapterStatus.UNINITIALIZED
        self._notify()

    async def sign_transaction(self, envelope_xdr: str, network_passphrase: str) -> str:
        raise InvalidRequestError(f"{self.id} cannot sign transactions")

    async def revalidate(self) -> bool:
        """Re-check the provider's view of the connection."""
        return self.is_connected

    # ---------------------------
    # Helpers for subclasses
    # ---------------------------
    def _restore(self, public_key: str, method: str, connected: bool = True) -> None:
        self.state.public_key = public_key
        self.state.connected = connected
        self.state.connection_method = method
        self.state.last_error = None
        if connected:
            self.records.set(PUBLIC_KEY, public_key)
            self.records.set(CONNECTION_METHOD, method)

    def _discard_session(self) -> None:
        self.records.clear()
        self.state.public_key = None
        self.state.connected = False
        self.state.connection_method = None
        self.state.last_error = None

    def _translate(self, exc: Exception) -> Exception:
        if isinstance(exc, WalletError):
            return exc
        category = classify_error(exc).category
        if category == ErrorCategory.RATE_LIMIT:
            return RateLimitedError(str(exc), provider=self.id)
        if category in (ErrorCategory.NETWORK, ErrorCategory.TIMEOUT):
            return NetworkError(str(exc), provider=self.id)
        return exc

    @abstractmethod
    async def _handshake(self) -> None:
        """Initialize the SDK; may restore an existing session via ``_restore``."""

    @abstractmethod
    async def _connect(self, **kwargs: Any) -> Tuple[str, str]:
        """Return ``(public_key, connection_method)``."""

    async def _disconnect(self) -> None:
        """Provider-side logout."""
