"""
Encrypted wallet backups on IPFS.

Wallet data is encrypted locally, pinned through Pinata, and the resulting
IPFS hash is remembered per account in the key-value store under
``walletRefs`` so the backup can be found again from the account id alone.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..core.encryption import MEMLIMIT, OPSLIMIT, EncryptedPayload, decrypt_data, encrypt_data
from ..core.errors import InvalidRequestError, NotFoundError
from ..core.keys import is_valid_public_key
from ..providers.pinata import PinataProvider
from ..storage.identity import KeyValueStore


logger = logging.getLogger(__name__)

WALLET_REFS = "walletRefs"
BACKUP_VERSION = "1.0.0"


class WalletBackupService:
    def __init__(
        self,
        pinata: PinataProvider,
        store: KeyValueStore,
        *,
        opslimit: int = OPSLIMIT,
        memlimit: int = MEMLIMIT,
    ) -> None:
        self.pinata = pinata
        self.store = store
        self._opslimit = opslimit
        self._memlimit = memlimit
        self._cache: Dict[str, Any] = {}

    # ---------------------------
    # Reference map
    # ---------------------------
    def _refs(self) -> Dict[str, str]:
        raw = self.store.get(WALLET_REFS)
        if not raw:
            return {}
        try:
            refs = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable %s entry", WALLET_REFS)
            return {}
        return refs if isinstance(refs, dict) else {}

    def _save_refs(self, refs: Dict[str, str]) -> None:
        if refs:
            self.store.set(WALLET_REFS, json.dumps(refs, sort_keys=True))
        else:
            self.store.delete(WALLET_REFS)

    def backup_ref(self, public_key: str) -> Optional[str]:
        return self._refs().get(public_key)

    # ---------------------------
    # Operations
    # ---------------------------
    async def store_backup(
        self,
        public_key: str,
        wallet_data: Dict[str, Any],
        user_identifier: Optional[str] = None,
    ) -> str:
        """
        Encrypt and pin ``wallet_data``; returns the IPFS hash.

        Raises:
            InvalidRequestError: bad account id or empty data
            NotReadyError, NetworkError, RateLimitedError: from Pinata
        """
        if not is_valid_public_key(public_key):
            raise InvalidRequestError("Invalid Stellar public key", field_name="public_key")
        if not wallet_data:
            raise InvalidRequestError("Wallet data is required", field_name="wallet_data")

        encrypted = encrypt_data(
            wallet_data,
            user_identifier or public_key,
            opslimit=self._opslimit,
            memlimit=self._memlimit,
        )
        content = {**encrypted.to_dict(), "publicKey": public_key, "version": BACKUP_VERSION}
        pinned = await self.pinata.pin_json(
            content,
            {
                "name": f"wallet-data-{public_key[:8]}",
                "keyvalues": {
                    "publicKey": public_key,
                    "createdAt": datetime.now(timezone.utc).isoformat(),
                    "type": "stellar-wallet",
                },
            },
        )

        ipfs_hash = pinned["ipfs_hash"]
        refs = self._refs()
        refs[public_key] = ipfs_hash
        self._save_refs(refs)
        self._cache[public_key] = wallet_data
        logger.info("Stored wallet backup for %s as %s", public_key[:8], ipfs_hash)
        return ipfs_hash

    async def retrieve_backup(self, public_key: str, user_identifier: Optional[str] = None) -> Dict[str, Any]:
        """
        Fetch and decrypt the backup for ``public_key``.

        Raises:
            NotFoundError: no backup recorded for the account
            InvalidRequestError: the identifier does not open the backup
            NetworkError: no gateway could serve the pin
        """
        if public_key in self._cache:
            return self._cache[public_key]

        ipfs_hash = self.backup_ref(public_key)
        if not ipfs_hash:
            raise NotFoundError("No wallet backup found", public_key=public_key)

        document = await self.pinata.fetch_json(ipfs_hash)
        # Pinata gateways return the pinned content; some wrap it as pinataContent.
        content = document.get("pinataContent", document)
        if not isinstance(content, dict):
            raise InvalidRequestError("Backup document is malformed")
        if content.get("publicKey") not in (None, public_key):
            raise InvalidRequestError("Backup belongs to a different account")

        wallet_data = decrypt_data(
            EncryptedPayload.from_dict(content),
            user_identifier or public_key,
            opslimit=self._opslimit,
            memlimit=self._memlimit,
        )
        self._cache[public_key] = wallet_data
        return wallet_data

    async def delete_backup(self, public_key: str) -> bool:
        """Unpin the backup and forget its reference. True when nothing remains."""
        self._cache.pop(public_key, None)
        refs = self._refs()
        ipfs_hash = refs.get(public_key)
        if not ipfs_hash:
            return True

        await self.pinata.unpin(ipfs_hash)
        refs.pop(public_key, None)
        self._save_refs(refs)
        logger.info("Deleted wallet backup for %s", public_key[:8])
        return True

    def clear_cache(self) -> None:
        self._cache.clear()
