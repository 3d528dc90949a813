"""
Persisted identity records.

A flat key-value store outlives the process (the browser's durable local store
in the web front-end, a JSON file here). Each adapter gets a view scoped
to the keys it owns so one adapter can never clobber another's record.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Optional, Protocol


logger = logging.getLogger(__name__)

PUBLIC_KEY = "publicKey"
CONNECTION_METHOD = "connectionMethod"
TRANSIENT_SECRET = "transientSecret"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryKeyValueStore:
    """Process-local store, used when no file is configured and in tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)


class JsonFileKeyValueStore:
    """Durable store backed by a single JSON object on disk."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._data: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Identity store %s unreadable, starting empty: %s", self.path, exc)
            return {}
        if not isinstance(payload, dict):
            return {}
        return {str(k): str(v) for k, v in payload.items()}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def delete(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()


def build_store(path: str) -> KeyValueStore:
    if path:
        return JsonFileKeyValueStore(path)
    return MemoryKeyValueStore()


class IdentityRecords:
    """View of the key-value store restricted to one adapter's keys."""

    def __init__(self, store: KeyValueStore, owner: str, fields: Iterable[str]) -> None:
        self._store = store
        self.owner = owner
        self.fields: FrozenSet[str] = frozenset(fields)

    def _key(self, name: str) -> str:
        if name not in self.fields:
            raise PermissionError(f"{self.owner} does not own record '{name}'")
        return f"{self.owner}.{name}"

    def get(self, name: str) -> Optional[str]:
        return self._store.get(self._key(name))

    def set(self, name: str, value: str) -> None:
        self._store.set(self._key(name), value)

    def delete(self, name: str) -> None:
        self._store.delete(self._key(name))

    def clear(self) -> None:
        """Erase every record owned by this view. Failures are logged, never raised."""
        for name in sorted(self.fields):
            try:
                self.delete(name)
            except OSError as exc:
                logger.warning("Failed to clear %s.%s: %s", self.owner, name, exc)
