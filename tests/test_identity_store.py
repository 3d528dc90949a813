import json

import pytest

from galerie.storage.identity import (
    CONNECTION_METHOD,
    PUBLIC_KEY,
    TRANSIENT_SECRET,
    IdentityRecords,
    JsonFileKeyValueStore,
    MemoryKeyValueStore,
    build_store,
)


def test_records_are_scoped_to_owner():
    store = MemoryKeyValueStore()
    popup = IdentityRecords(store, "popup-identity", (PUBLIC_KEY, CONNECTION_METHOD))
    direct = IdentityRecords(store, "direct-wallet", (PUBLIC_KEY, CONNECTION_METHOD))

    popup.set(PUBLIC_KEY, "GPOPUP")
    direct.set(PUBLIC_KEY, "GDIRECT")

    assert popup.get(PUBLIC_KEY) == "GPOPUP"
    assert direct.get(PUBLIC_KEY) == "GDIRECT"

    direct.clear()
    assert popup.get(PUBLIC_KEY) == "GPOPUP"
    assert store.snapshot() == {"popup-identity.publicKey": "GPOPUP"}


def test_unowned_field_is_rejected():
    records = IdentityRecords(MemoryKeyValueStore(), "direct-wallet", (PUBLIC_KEY, CONNECTION_METHOD))

    with pytest.raises(PermissionError):
        records.set(TRANSIENT_SECRET, "secret")


def test_json_store_survives_reload(tmp_path):
    path = tmp_path / "identity.json"
    store = JsonFileKeyValueStore(path)
    store.set("legacy-popup.publicKey", "GABC")
    store.set("legacy-popup.transientSecret", "s3cret")
    store.delete("legacy-popup.transientSecret")

    reloaded = JsonFileKeyValueStore(path)

    assert reloaded.get("legacy-popup.publicKey") == "GABC"
    assert reloaded.get("legacy-popup.transientSecret") is None
    assert json.loads(path.read_text()) == {"legacy-popup.publicKey": "GABC"}


def test_json_store_tolerates_corrupt_file(tmp_path):
    path = tmp_path / "identity.json"
    path.write_text("{not json")

    assert JsonFileKeyValueStore(path).get("anything") is None


def test_build_store_picks_backend(tmp_path):
    assert isinstance(build_store(""), MemoryKeyValueStore)
    assert isinstance(build_store(str(tmp_path / "ids.json")), JsonFileKeyValueStore)
