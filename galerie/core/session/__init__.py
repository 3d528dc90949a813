"""
Session Reconciliation

The Session Store holds the one logical wallet session; the Unifying
Reconciler writes identity fields from adapter state and the Balance Poller
writes the balance.
"""

from .models import (
    EMPTY_SESSION,
    AdapterState,
    AdapterStatus,
    Balance,
    BalanceLine,
    ConnectionSource,
    Session,
)
from .poller import BalancePoller
from .reconciler import DEFAULT_PRECEDENCE, UnifyingReconciler, compute_session
from .store import BALANCE_POLLER, RECONCILER, SessionStore

__all__ = [
    "Session",
    "Balance",
    "BalanceLine",
    "ConnectionSource",
    "AdapterStatus",
    "AdapterState",
    "EMPTY_SESSION",
    "SessionStore",
    "RECONCILER",
    "BALANCE_POLLER",
    "UnifyingReconciler",
    "compute_session",
    "DEFAULT_PRECEDENCE",
    "BalancePoller",
]
