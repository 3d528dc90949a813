import json

import pytest
from nacl.pwhash import argon2id

from galerie.core.errors import InvalidRequestError, NotFoundError
from galerie.services.wallet_backup import WALLET_REFS, WalletBackupService
from galerie.storage.identity import MemoryKeyValueStore

from fakes import KEY_A, KEY_B, PinningService


WALLET_DATA = {"label": "main", "recoveryHint": "blue"}


@pytest.fixture
def pinning():
    return PinningService()


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


def backups_for(pinning, kv):
    return WalletBackupService(pinning.provider(), kv, opslimit=argon2id.OPSLIMIT_MIN, memlimit=argon2id.MEMLIMIT_MIN)


@pytest.mark.asyncio
async def test_store_pins_only_ciphertext_and_records_ref(pinning, kv):
    backups = backups_for(pinning, kv)

    ipfs_hash = await backups.store_backup(KEY_A, WALLET_DATA)

    content = pinning.pins[ipfs_hash]
    assert set(content) == {"encryptedData", "salt", "publicKey", "version"}
    assert content["publicKey"] == KEY_A
    assert "blue" not in json.dumps(content)
    assert pinning.metadata[ipfs_hash]["name"] == f"wallet-data-{KEY_A[:8]}"
    assert pinning.metadata[ipfs_hash]["keyvalues"]["type"] == "stellar-wallet"
    assert json.loads(kv.get(WALLET_REFS)) == {KEY_A: ipfs_hash}


@pytest.mark.asyncio
async def test_retrieve_decrypts_from_gateway(pinning, kv):
    await backups_for(pinning, kv).store_backup(KEY_A, WALLET_DATA)

    # a fresh service has no cache, so the backup must come back through the gateway
    restored = await backups_for(pinning, kv).retrieve_backup(KEY_A)

    assert restored == WALLET_DATA


@pytest.mark.asyncio
async def test_custom_identifier_is_required_to_open(pinning, kv):
    await backups_for(pinning, kv).store_backup(KEY_A, WALLET_DATA, user_identifier="user@example.com")

    with pytest.raises(InvalidRequestError):
        await backups_for(pinning, kv).retrieve_backup(KEY_A)

    restored = await backups_for(pinning, kv).retrieve_backup(KEY_A, user_identifier="user@example.com")
    assert restored == WALLET_DATA


@pytest.mark.asyncio
async def test_retrieve_without_backup_is_not_found(pinning, kv):
    with pytest.raises(NotFoundError):
        await backups_for(pinning, kv).retrieve_backup(KEY_B)


@pytest.mark.asyncio
async def test_store_validates_before_pinning(pinning, kv):
    backups = backups_for(pinning, kv)

    with pytest.raises(InvalidRequestError):
        await backups.store_backup("GNOTAKEY", WALLET_DATA)
    with pytest.raises(InvalidRequestError):
        await backups.store_backup(KEY_A, {})

    assert pinning.pins == {}


@pytest.mark.asyncio
async def test_delete_unpins_and_forgets_ref(pinning, kv):
    backups = backups_for(pinning, kv)
    first = await backups.store_backup(KEY_A, WALLET_DATA)
    await backups.store_backup(KEY_B, {"label": "spare"})

    assert await backups.delete_backup(KEY_A) is True

    assert pinning.unpinned == [first]
    assert backups.backup_ref(KEY_A) is None
    assert backups.backup_ref(KEY_B) is not None
    with pytest.raises(NotFoundError):
        await backups.retrieve_backup(KEY_A)


@pytest.mark.asyncio
async def test_delete_without_backup_is_a_no_op(pinning, kv):
    assert await backups_for(pinning, kv).delete_backup(KEY_A) is True
    assert pinning.unpinned == []
    assert kv.snapshot() == {}
