"""Popup-login identity adapter (Web3Auth modal)."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from ..errors import DerivationFailureError, InvalidRequestError, NotReadyError
from ..keys import DerivedKeypair, derive_keypair
from ..session.models import ConnectionSource
from ...providers.base import IdentityHandle, IdentityProvider
from ...storage.identity import PUBLIC_KEY
from .base import ProviderAdapter


logger = logging.getLogger(__name__)

# (envelope_xdr, keypair, network_passphrase) -> signed envelope xdr
EnvelopeSigner = Callable[[str, DerivedKeypair, str], Awaitable[str]]

WEB3AUTH_METHOD = "web3auth"


class PopupLoginFlow:
    """
    The steps shared by every adapter that sits on the popup-login SDK:
    handshake, login, secret retrieval and logout.
    """

    def __init__(self, identity: IdentityProvider) -> None:
        self.identity = identity

    async def handshake(self) -> Optional[DerivedKeypair]:
        """Initialize the modal and, when the SDK still holds a session, derive its key."""
        await self.identity.init_modal()

        handle = self.identity.provider if self.identity.connected else None
        if handle is None:
            return None
        try:
            return derive_keypair(await self.request_secret(handle))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not restore existing identity session: %s", exc)
            return None

    async def login(self) -> str:
        """Open the popup and return the raw secret of the logged-in user."""
        handle = await self.identity.connect()
        if handle is None:
            raise NotReadyError("Identity provider returned no session handle")
        return await self.request_secret(handle)

    async def request_secret(self, handle: IdentityHandle) -> str:
        secret = await handle.request({"method": "private_key"})
        if not secret:
            raise DerivationFailureError("Identity provider returned no private key")
        return str(secret)

    async def user_info(self) -> Dict[str, Any]:
        try:
            info = await self.identity.get_user_info()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not load identity user info: %s", exc)
            return {}
        return dict(info or {})

    async def logout(self) -> None:
        if self.identity.connected:
            await self.identity.logout()


class PopupIdentityAdapter(ProviderAdapter):
    """Email/social login through the identity provider's popup."""

    source = ConnectionSource.POPUP_IDENTITY

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

    async def _handshake(self) -> None:
        keypair = await self.flow.handshake()
        if keypair is not None:
            self._keypair = keypair
            self.user_info = await self.flow.user_info()
            self._restore(keypair.public_key, WEB3AUTH_METHOD)
            return

        persisted = self.records.get(PUBLIC_KEY)
        if persisted:
            # Previous session remembered, but the SDK needs a fresh login to sign.
            self._restore(persisted, WEB3AUTH_METHOD, connected=False)

    async def _connect(self, **kwargs: Any) -> Tuple[str, str]:
        secret = await self.flow.login()
        self._keypair = derive_keypair(secret)
        self.user_info = await self.flow.user_info()
        return self._keypair.public_key, WEB3AUTH_METHOD

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
