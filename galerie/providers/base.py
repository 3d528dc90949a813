from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: int = 10

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass


@dataclass(frozen=True)
class LedgerBalance:
    """One entry of an account's balances, in the order Horizon returns them."""
    asset_type: str
    amount: Decimal
    asset_code: Optional[str] = None
    issuer: Optional[str] = None

    @property
    def is_native(self) -> bool:
        return self.asset_type == "native"


@dataclass(frozen=True)
class AccountBalances:
    account_id: str
    balances: List[LedgerBalance] = field(default_factory=list)
    sequence: Optional[str] = None


class LedgerProvider(Provider):
    """Provider for ledger account data and transaction submission"""

    @abstractmethod
    async def load_account(self, public_key: str) -> AccountBalances:
        """Load an account's balances. Raises NotFoundError for unknown addresses."""
        pass

    @abstractmethod
    async def submit_transaction(self, envelope_xdr: str) -> Dict[str, Any]:
        """Submit a signed envelope. Raises SubmissionRejectedError with result codes."""
        pass


class PriceProvider(Provider):
    """Provider for asset price data"""

    @abstractmethod
    async def get_xlm_price(self, vs_currency: str = "usd") -> Optional[Decimal]:
        """Current XLM price in ``vs_currency``, or None when unavailable"""
        pass


# ---------------------------------------------------------------------------
# Client-side SDK contracts. Implementations are owned by the external SDKs.
# ---------------------------------------------------------------------------


@runtime_checkable
class IdentityHandle(Protocol):
    """Provider handle returned by a successful popup login."""

    async def request(self, args: Mapping[str, Any]) -> Any:
        ...


@runtime_checkable
class IdentityProvider(Protocol):
    """Popup-login identity SDK (Web3Auth modal)."""

    @property
    def connected(self) -> bool:
        ...

    @property
    def provider(self) -> Optional[IdentityHandle]:
        ...

    async def init_modal(self) -> None:
        ...

    async def connect(self) -> IdentityHandle:
        ...

    async def get_user_info(self) -> Dict[str, Any]:
        ...

    async def logout(self) -> None:
        ...


@runtime_checkable
class WalletExtension(Protocol):
    """Browser wallet extension (Freighter, xBull, LOBSTR...)."""

    id: str

    async def is_connected(self) -> bool:
        ...

    async def request_access(self) -> Dict[str, Any]:
        ...

    async def get_address(self) -> Dict[str, Any]:
        ...

    async def sign_transaction(self, xdr: str, network: str) -> Dict[str, Any]:
        ...
