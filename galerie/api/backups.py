"""
Wallet Backup Endpoints

Encrypted wallet data pinned to IPFS, addressed by account id.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..core.errors import WalletError
from ..services.wallet_backup import WalletBackupService
from .deps import get_backups, to_http_error

router = APIRouter(prefix="/backups")


class StoreBackupRequest(BaseModel):
    public_key: str = Field(alias="publicKey")
    wallet_data: Dict[str, Any] = Field(alias="walletData")
    user_identifier: Optional[str] = Field(default=None, alias="userIdentifier")


class RetrieveBackupRequest(BaseModel):
    user_identifier: Optional[str] = Field(default=None, alias="userIdentifier")


@router.post("")
async def store_backup(
    body: StoreBackupRequest,
    backups: WalletBackupService = Depends(get_backups),
) -> Dict[str, Any]:
    try:
        ipfs_hash = await backups.store_backup(body.public_key, body.wallet_data, body.user_identifier)
    except WalletError as exc:
        raise to_http_error(exc) from exc
    return {"publicKey": body.public_key, "ipfsHash": ipfs_hash}


@router.post("/{public_key}/retrieve")
async def retrieve_backup(
    public_key: str,
    body: Optional[RetrieveBackupRequest] = None,
    backups: WalletBackupService = Depends(get_backups),
) -> Dict[str, Any]:
    try:
        wallet_data = await backups.retrieve_backup(public_key, body.user_identifier if body else None)
    except WalletError as exc:
        raise to_http_error(exc) from exc
    return {"publicKey": public_key, "walletData": wallet_data}


@router.delete("/{public_key}")
async def delete_backup(
    public_key: str,
    backups: WalletBackupService = Depends(get_backups),
) -> Dict[str, Any]:
    try:
        deleted = await backups.delete_backup(public_key)
    except WalletError as exc:
        raise to_http_error(exc) from exc
    return {"publicKey": public_key, "deleted": deleted}
