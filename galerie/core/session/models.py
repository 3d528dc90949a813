"""
Session and adapter state models.

The reconciled Session is immutable; every change produces a new instance so
subscribers can compare old and new views.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ConnectionSource(str, Enum):
    """Which adapter supplied the current identity."""
    NONE = "none"
    POPUP_IDENTITY = "popup-identity"
    DIRECT_WALLET = "direct-wallet"
    LEGACY_POPUP = "legacy-popup"


class AdapterStatus(str, Enum):
    """Lifecycle of a provider adapter."""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    RATE_LIMITED = "rate-limited"
    ERROR = "error"


@dataclass(frozen=True)
class BalanceLine:
    """A non-native asset balance (trustline)."""
    code: str
    issuer: str
    amount: Decimal


@dataclass(frozen=True)
class Balance:
    native: Decimal
    lines: Tuple[BalanceLine, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "native": str(self.native),
            "lines": [
                {"code": line.code, "issuer": line.issuer, "amount": str(line.amount)}
                for line in self.lines
            ],
        }


@dataclass(frozen=True)
class Session:
    public_key: Optional[str] = None
    is_connected: bool = False
    connection_source: ConnectionSource = ConnectionSource.NONE
    balance: Optional[Balance] = None

    def evolve(self, **changes: Any) -> "Session":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "publicKey": self.public_key,
            "isConnected": self.is_connected,
            "connectionSource": self.connection_source.value,
            "balance": self.balance.to_dict() if self.balance else None,
        }


EMPTY_SESSION = Session()


@dataclass
class AdapterState:
    """Mutable state owned by a single provider adapter."""
    status: AdapterStatus = AdapterStatus.UNINITIALIZED
    public_key: Optional[str] = None
    connected: bool = False
    retry_count: int = 0
    last_error: Optional[str] = None
    connection_method: Optional[str] = None
    history: List[Tuple[AdapterStatus, AdapterStatus]] = field(default_factory=list)

    @property
    def is_rate_limited(self) -> bool:
        return self.status == AdapterStatus.RATE_LIMITED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "publicKey": self.public_key,
            "isConnected": self.connected,
            "retryCount": self.retry_count,
            "lastError": self.last_error,
            "connectionMethod": self.connection_method,
        }
