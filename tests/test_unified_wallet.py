from decimal import Decimal

import pytest

from galerie.config import Settings
from galerie.core.errors import InvalidRequestError
from galerie.core.session import AdapterStatus, ConnectionSource
from galerie.providers.moonpay import MoonPayWidget
from galerie.services import UnifiedWallet
from galerie.storage.identity import MemoryKeyValueStore

from fakes import (
    KEY_A,
    KEY_B,
    FakeClock,
    FakeExtension,
    FakeIdentity,
    FakeLedger,
    make_account,
    settle,
)


def build_wallet(identity=None, extension=None, **config):
    ledger = FakeLedger({KEY_A: make_account(KEY_A, "100"), KEY_B: make_account(KEY_B, "42.5")})
    key_store = MemoryKeyValueStore()
    wallet = UnifiedWallet(
        config=Settings(_env_file=None, **config),
        ledger=ledger,
        identity=identity,
        extension=extension,
        widget=MoonPayWidget(api_key="pk_test", base_url="https://buy-sandbox.moonpay.com"),
        key_store=key_store,
        clock=FakeClock(),
    )
    return wallet, ledger, key_store


@pytest.mark.asyncio
async def test_start_initializes_every_adapter():
    wallet, _, _ = build_wallet(identity=FakeIdentity(), extension=FakeExtension())

    session = await wallet.start()

    assert [state["id"] for state in wallet.adapter_states()] == ["legacy-popup", "direct-wallet", "popup-identity"]
    assert all(state["status"] == AdapterStatus.READY.value for state in wallet.adapter_states())
    assert not session.is_connected
    assert session.connection_source == ConnectionSource.NONE
    await wallet.stop()


@pytest.mark.asyncio
async def test_connect_extension_loads_balance():
    wallet, ledger, _ = build_wallet(identity=FakeIdentity(), extension=FakeExtension())
    await wallet.start()

    session = await wallet.connect("direct-wallet")
    await settle()

    assert session.connection_source == ConnectionSource.DIRECT_WALLET
    assert session.public_key == KEY_B
    assert ledger.calls == [KEY_B]
    assert wallet.session.balance.native == Decimal("42.5")
    assert wallet.format_address() == f"{KEY_B[:4]}...{KEY_B[-4:]}"
    await wallet.stop()


@pytest.mark.asyncio
async def test_higher_precedence_wins_and_logout_clears_everything():
    identity = FakeIdentity()
    wallet, _, key_store = build_wallet(identity=identity, extension=FakeExtension())
    await wallet.start()

    await wallet.connect("popup-identity")
    assert wallet.session.public_key == KEY_A
    assert wallet.session.connection_source == ConnectionSource.POPUP_IDENTITY

    await wallet.connect("direct-wallet")
    assert wallet.session.public_key == KEY_B
    assert wallet.session.connection_source == ConnectionSource.DIRECT_WALLET

    session = await wallet.logout()

    assert not session.is_connected
    assert session.public_key is None
    assert session.balance is None
    assert identity.logout_calls == 1
    assert key_store.snapshot() == {}
    assert not wallet.poller.running
    await wallet.stop()


@pytest.mark.asyncio
async def test_connect_after_logout_reinitializes_adapter():
    wallet, _, _ = build_wallet(extension=FakeExtension())
    await wallet.start()
    await wallet.connect("direct-wallet")
    await wallet.logout()
    assert wallet.adapter("direct-wallet").get_status() == AdapterStatus.UNINITIALIZED

    session = await wallet.connect("direct-wallet", address=KEY_A)

    assert wallet.adapter("direct-wallet").get_status() == AdapterStatus.READY
    assert session.public_key == KEY_A
    assert session.is_connected
    await wallet.stop()


@pytest.mark.asyncio
async def test_sign_and_submit_through_extension():
    extension = FakeExtension()
    wallet, ledger, _ = build_wallet(extension=extension)
    await wallet.start()
    await wallet.connect("direct-wallet")

    result = await wallet.sign_and_submit("AAAA")

    assert extension.signed == [("AAAA", "TESTNET")]
    assert ledger.submitted == ["AAAA:signed"]
    assert result["hash"] == "f00d"
    assert wallet.session.balance.native == Decimal("42.5")
    await wallet.stop()


@pytest.mark.asyncio
async def test_sign_and_submit_requires_signing_capable_session():
    wallet, ledger, _ = build_wallet(extension=FakeExtension())
    await wallet.start()

    with pytest.raises(InvalidRequestError):
        await wallet.sign_and_submit("AAAA")

    await wallet.connect("direct-wallet", address=KEY_A)
    with pytest.raises(InvalidRequestError):
        await wallet.sign_and_submit("AAAA")
    assert ledger.submitted == []
    await wallet.stop()


@pytest.mark.asyncio
async def test_unknown_and_disabled_sources_rejected():
    wallet, _, _ = build_wallet(identity=FakeIdentity(), enabled_adapters=["direct-wallet"])

    with pytest.raises(InvalidRequestError):
        wallet.adapter("metamask")
    with pytest.raises(InvalidRequestError):
        await wallet.connect("popup-identity")


def test_popup_adapters_omitted_without_identity_sdk():
    wallet, _, _ = build_wallet()

    assert [adapter.id for adapter in wallet.adapters] == ["direct-wallet"]


@pytest.mark.asyncio
async def test_retry_recovers_failed_adapter():
    identity = FakeIdentity(init_errors=[ValueError("invalid client id"), ValueError("invalid client id")])
    wallet, _, _ = build_wallet(identity=identity)
    await wallet.start()
    assert wallet.adapter("popup-identity").get_status() == AdapterStatus.ERROR

    status = await wallet.retry("popup-identity")

    assert status == AdapterStatus.READY
    assert wallet.adapter("legacy-popup").get_status() == AdapterStatus.ERROR
    await wallet.stop()


@pytest.mark.asyncio
async def test_revalidate_ends_session_when_extension_unplugged():
    extension = FakeExtension()
    wallet, _, _ = build_wallet(extension=extension)
    await wallet.start()
    await wallet.connect("direct-wallet")

    extension.connected = False
    session = await wallet.revalidate()

    assert not session.is_connected
    assert session.connection_source == ConnectionSource.NONE
    await wallet.stop()
