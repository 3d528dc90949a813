"""Direct wallet adapter: browser wallet extension or a manually entered account id."""

from __future__ import annotations

from typing import Any, Optional, Tuple

from ..errors import InvalidRequestError, NotReadyError
from ..keys import is_valid_public_key
from ..session.models import ConnectionSource
from ...providers.base import LedgerProvider, WalletExtension
from ...storage.identity import CONNECTION_METHOD, PUBLIC_KEY
from .base import ProviderAdapter

MANUAL_METHOD = "manual"


class DirectWalletAdapter(ProviderAdapter):
    """
    Holds only public information: the account id and how it was connected.
    Signing is delegated to the extension; manual entries are read-only.
    """

    source = ConnectionSource.DIRECT_WALLET

    def __init__(
        self,
        records,
        ledger: LedgerProvider,
        *,
        extension: Optional[WalletExtension] = None,
        network: str = "TESTNET",
        **kwargs: Any,
    ) -> None:
        super().__init__(records, **kwargs)
        self.ledger = ledger
        self.extension = extension
        self.network = network

    @property
    def uses_extension(self) -> bool:
        return (
            self.extension is not None
            and self.is_connected
            and self.state.connection_method == self.extension.id
        )

    async def _handshake(self) -> None:
        persisted = self.records.get(PUBLIC_KEY)
        method = self.records.get(CONNECTION_METHOD) or MANUAL_METHOD
        if not persisted:
            return
        if not is_valid_public_key(persisted):
            self.logger.warning("Discarding malformed persisted account id")
            self.records.clear()
            return

        if method != MANUAL_METHOD:
            if self.extension is None or method != self.extension.id:
                self.records.clear()
                return
            if not await self.extension.is_connected():
                self.logger.info("Wallet extension no longer connected; clearing persisted session")
                self.records.clear()
                return

        self._restore(persisted, method)

    async def _connect(self, address: Optional[str] = None, **kwargs: Any) -> Tuple[str, str]:
        if address is not None:
            return await self._connect_manual(address), MANUAL_METHOD
        return await self._connect_extension()

    async def _connect_manual(self, address: str) -> str:
        candidate = address.strip()
        if not is_valid_public_key(candidate):
            raise InvalidRequestError("Invalid Stellar public key format", field_name="address")
        # NotFoundError propagates: unknown accounts cannot be used.
        await self.ledger.load_account(candidate)
        return candidate

    async def _connect_extension(self) -> Tuple[str, str]:
        if self.extension is None:
            raise InvalidRequestError("No wallet extension available; enter a public key instead")

        access = await self.extension.request_access() or {}
        if access.get("error"):
            raise InvalidRequestError(f"Wallet access denied: {access['error']}")

        result = await self.extension.get_address() or {}
        if result.get("error"):
            raise InvalidRequestError(f"Wallet did not share an address: {result['error']}")
        address = result.get("address")
        if not is_valid_public_key(address):
            raise InvalidRequestError("Wallet returned an invalid Stellar address")
        return address, self.extension.id

    async def sign_transaction(self, envelope_xdr: str, network_passphrase: str) -> str:
        if not self.is_connected:
            raise NotReadyError("Wallet not connected", adapter=self.id)
        if not self.uses_extension:
            raise InvalidRequestError("Manually entered accounts cannot sign transactions")
        if not envelope_xdr:
            raise InvalidRequestError("Transaction envelope is empty", field_name="xdr")

        result = await self.extension.sign_transaction(envelope_xdr, network=self.network) or {}
        if result.get("error"):
            raise InvalidRequestError(f"Wallet refused to sign: {result['error']}")
        signed = result.get("signedXDR") or result.get("signedTxXdr")
        if not signed:
            raise InvalidRequestError("Wallet returned no signed transaction")
        return signed

    async def revalidate(self) -> bool:
        if self.uses_extension and not await self.extension.is_connected():
            self.logger.info("Wallet extension disconnected; ending direct-wallet session")
            await self.disconnect()
        return self.is_connected
