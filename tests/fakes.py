"""Test doubles shared by the wallet session tests."""

import asyncio
import itertools
import json
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import httpx

from galerie.core.errors import NotFoundError, SubmissionRejectedError
from galerie.core.keys import derive_keypair
from galerie.providers.base import AccountBalances, LedgerBalance, LedgerProvider
from galerie.providers.pinata import PinataProvider


KEY_A = derive_keypair("a" * 64).public_key
KEY_B = derive_keypair("b" * 64).public_key
KEY_C = derive_keypair("c" * 64).public_key

SECRET_A = "0x" + "a" * 64


async def settle(rounds: int = 50) -> None:
    """Let every runnable task make progress."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeClock:
    """Virtual time: sleepers wake only when a test advances the clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self._order = itertools.count()
        self._sleepers: List[Tuple[float, int, asyncio.Future]] = []

    def monotonic(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self._sleepers.append((self.now + seconds, next(self._order), future))
        await future

    @property
    def pending(self) -> List[float]:
        return sorted(deadline for deadline, _, future in self._sleepers if not future.done())

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        await settle()
        while True:
            self._sleepers = [entry for entry in self._sleepers if not entry[2].done()]
            due = sorted(entry for entry in self._sleepers if entry[0] <= target)
            if not due:
                break
            deadline, _, future = due[0]
            self._sleepers.remove(due[0])
            self.now = max(self.now, deadline)
            future.set_result(None)
            await settle()
        self.now = target
        await settle()


def make_account(public_key: str, native: str = "100", lines: Tuple[Tuple[str, str, str], ...] = ()) -> AccountBalances:
    balances = [LedgerBalance(asset_type="native", amount=Decimal(native))]
    for code, issuer, amount in lines:
        balances.append(
            LedgerBalance(asset_type="credit_alphanum4", amount=Decimal(amount), asset_code=code, issuer=issuer)
        )
    return AccountBalances(account_id=public_key, balances=balances, sequence="1")


class FakeLedger(LedgerProvider):
    """
    In-memory ledger. With ``manual=True`` every ``load_account`` waits until
    the test resolves it through ``pending``.
    """

    name = "fake-ledger"

    def __init__(self, accounts: Optional[Dict[str, AccountBalances]] = None, manual: bool = False) -> None:
        self.accounts = dict(accounts or {})
        self.manual = manual
        self.calls: List[str] = []
        self.pending: List[Tuple[str, asyncio.Future]] = []
        self.submitted: List[str] = []
        self.reject_codes: Optional[Dict[str, Any]] = None
        self.fail_with: Optional[Exception] = None

    async def ready(self) -> bool:
        return True

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy"}

    async def load_account(self, public_key: str) -> AccountBalances:
        self.calls.append(public_key)
        if self.manual:
            future = asyncio.get_running_loop().create_future()
            self.pending.append((public_key, future))
            return await future
        if self.fail_with is not None:
            raise self.fail_with
        if public_key not in self.accounts:
            raise NotFoundError(f"Account {public_key} not found", public_key=public_key)
        return self.accounts[public_key]

    async def submit_transaction(self, envelope_xdr: str) -> Dict[str, Any]:
        self.submitted.append(envelope_xdr)
        if self.reject_codes is not None:
            raise SubmissionRejectedError("Transaction failed", result_codes=self.reject_codes)
        return {"hash": "f00d", "ledger": 7, "successful": True}


class FakeHandle:
    def __init__(self, secret: Optional[str]) -> None:
        self.secret = secret
        self.requests: List[Dict[str, Any]] = []

    async def request(self, args):
        self.requests.append(dict(args))
        return self.secret


class FakeIdentity:
    """Popup-login SDK double. ``init_errors`` are raised by successive ``init_modal`` calls."""

    def __init__(self, secret: Optional[str] = SECRET_A, init_errors: Optional[List[BaseException]] = None) -> None:
        self.secret = secret
        self.init_errors = list(init_errors or [])
        self.hang = False
        self.connected = False
        self.provider: Optional[FakeHandle] = None
        self.init_calls = 0
        self.connect_calls = 0
        self.logout_calls = 0

    async def init_modal(self) -> None:
        self.init_calls += 1
        if self.hang:
            await asyncio.get_running_loop().create_future()
        if self.init_errors:
            raise self.init_errors.pop(0)

    async def connect(self) -> FakeHandle:
        self.connect_calls += 1
        self.connected = True
        self.provider = FakeHandle(self.secret)
        return self.provider

    async def get_user_info(self) -> Dict[str, Any]:
        return {"email": "collector@example.com", "name": "Collector"}

    async def logout(self) -> None:
        self.logout_calls += 1
        self.connected = False
        self.provider = None


class FakeExtension:
    """Browser wallet extension double."""

    id = "freighter"

    def __init__(self, address: str = KEY_B, connected: bool = True) -> None:
        self.address = address
        self.connected = connected
        self.denied = False
        self.signed: List[Tuple[str, str]] = []

    async def is_connected(self) -> bool:
        return self.connected

    async def request_access(self) -> Dict[str, Any]:
        if self.denied:
            return {"error": "User declined access"}
        return {}

    async def get_address(self) -> Dict[str, Any]:
        return {"address": self.address}

    async def sign_transaction(self, xdr: str, network: str) -> Dict[str, Any]:
        self.signed.append((xdr, network))
        return {"signedXDR": f"{xdr}:signed"}


class PinningService:
    """In-memory stand-in for the Pinata API (api.pinata.test) and its gateway (gateway.test)."""

    def __init__(self):
        self.pins: Dict[str, Any] = {}
        self.metadata: Dict[str, Any] = {}
        self.unpinned: List[str] = []
        self._ids = itertools.count()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        host = request.url.host
        if host == "api.pinata.test" and path == "/pinning/pinJSONToIPFS":
            body = json.loads(request.content)
            ipfs_hash = f"QmBackup{next(self._ids)}"
            self.pins[ipfs_hash] = body["pinataContent"]
            self.metadata[ipfs_hash] = body["pinataMetadata"]
            return httpx.Response(200, json={"IpfsHash": ipfs_hash, "PinSize": 10, "Timestamp": "2024-01-01T00:00:00Z"})
        if host == "api.pinata.test" and path.startswith("/pinning/unpin/"):
            ipfs_hash = path.rsplit("/", 1)[-1]
            self.unpinned.append(ipfs_hash)
            self.pins.pop(ipfs_hash, None)
            return httpx.Response(200, text="OK")
        if host == "gateway.test":
            ipfs_hash = path.rsplit("/", 1)[-1]
            if ipfs_hash in self.pins:
                return httpx.Response(200, json=self.pins[ipfs_hash])
            return httpx.Response(404)
        raise AssertionError(f"unexpected request {request.method} {request.url}")

    def provider(self):
        return PinataProvider(
            api_key="key",
            secret_api_key="secret",
            gateway_url="https://gateway.test/ipfs",
            fallback_gateways=[],
            base_url="https://api.pinata.test",
            transport=httpx.MockTransport(self),
        )
