"""Process-wide holder of the reconciled wallet session."""

import logging
from typing import Any, Callable, List, Optional

from .models import EMPTY_SESSION, Session


logger = logging.getLogger(__name__)

SessionListener = Callable[[Session, Session], None]

RECONCILER = "reconciler"
BALANCE_POLLER = "balance-poller"
WRITERS = frozenset({RECONCILER, BALANCE_POLLER})


class SessionStore:
    """
    Observable session state.

    Readers call ``subscribe`` and receive ``(previous, current)`` synchronously,
    in registration order, whenever the session changes. Only the reconciler and
    the balance poller may write.
    """

    def __init__(self, initial: Optional[Session] = None) -> None:
        self._session = initial or EMPTY_SESSION
        self._listeners: List[SessionListener] = []

    @property
    def session(self) -> Session:
        return self._session

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def update(self, writer: str, **changes: Any) -> Session:
        if writer not in WRITERS:
            raise PermissionError(f"{writer!r} may not write the session")
        current = self._session.evolve(**changes)
        self._publish(current)
        return current

    def reset(self, writer: str) -> Session:
        if writer not in WRITERS:
            raise PermissionError(f"{writer!r} may not write the session")
        self._publish(EMPTY_SESSION)
        return EMPTY_SESSION

    def _publish(self, current: Session) -> None:
        previous = self._session
        if current == previous:
            return
        self._session = current
        for listener in list(self._listeners):
            try:
                listener(previous, current)
            except Exception as exc:  # noqa: BLE001
                logger.error("Session listener %r failed: %s", listener, exc, exc_info=True)
