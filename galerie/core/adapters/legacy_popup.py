"""
Legacy popup-login adapter.

The older integration path talks to the same popup-login SDK a second time and
hands the raw secret over through a transient persisted record. This adapter
owns that record: it writes it, consumes it, and erases it whether or not the
derivation succeeds.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from ..errors import InvalidRequestError, NotReadyError
from ..keys import DerivedKeypair, derive_keypair
from ..session.models import ConnectionSource
from ...providers.base import IdentityProvider
from ...storage.identity import CONNECTION_METHOD, PUBLIC_KEY, TRANSIENT_SECRET
from .base import ProviderAdapter
from .popup_identity import EnvelopeSigner, PopupLoginFlow

LEGACY_METHOD = "web3auth-legacy"


class LegacyPopupAdapter(ProviderAdapter):
    source = ConnectionSource.LEGACY_POPUP
    record_fields = (PUBLIC_KEY, CONNECTION_METHOD, TRANSIENT_SECRET)

    def __init__(
        self,
        identity: IdentityProvider,
        records,
        *,
        signer: Optional[EnvelopeSigner] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(records, **kwargs)
        self.flow = PopupLoginFlow(identity)
        self.user_info: Dict[str, Any] = {}
        self._keypair: Optional[DerivedKeypair] = None
        self._signer = signer

    @property
    def has_pending_handoff(self) -> bool:
        return bool(self.records.get(TRANSIENT_SECRET))

    async def _handshake(self) -> None:
        keypair = await self.flow.handshake()
        if keypair is not None:
            self._keypair = keypair
            self._restore(keypair.public_key, LEGACY_METHOD)
            # A live SDK session supersedes any leftover handoff.
            self.records.delete(TRANSIENT_SECRET)
            return

        if self.has_pending_handoff:
            self.logger.info("Consuming leftover secret handoff")
            try:
                public_key = self._consume_handoff()
            except Exception as exc:  # noqa: BLE001
                self.logger.warning("Leftover secret handoff unusable: %s", exc)
            else:
                self._restore(public_key, LEGACY_METHOD)

    async def accept_handoff(self, secret: str) -> str:
        """Receive a secret from a login event and connect with it."""
        return await self.connect(secret=secret)

    async def _connect(self, secret: Optional[str] = None, **kwargs: Any) -> Tuple[str, str]:
        if secret is None:
            secret = await self.flow.login()
            self.user_info = await self.flow.user_info()
        if not secret:
            raise InvalidRequestError("Secret handoff is empty", field_name="secret")
        self.records.set(TRANSIENT_SECRET, secret)
        return self._consume_handoff(), LEGACY_METHOD

    def _consume_handoff(self) -> str:
        secret = self.records.get(TRANSIENT_SECRET)
        try:
            if not secret:
                raise InvalidRequestError("No secret handoff pending")
            self._keypair = derive_keypair(secret)
        finally:
            self.records.delete(TRANSIENT_SECRET)
        return self._keypair.public_key

    async def _disconnect(self) -> None:
        self._keypair = None
        self.user_info = {}
        await self.flow.logout()

    async def sign_transaction(self, envelope_xdr: str, network_passphrase: str) -> str:
        if not self.is_connected or self._keypair is None:
            raise NotReadyError("Log in again to sign transactions", adapter=self.id)
        if self._signer is None:
            raise InvalidRequestError(f"{self.id} has no transaction signer configured")
        return await self._signer(envelope_xdr, self._keypair, network_passphrase)
