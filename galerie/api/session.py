"""
Session API Endpoints

Read the reconciled wallet session and drive the provider adapters.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..core.errors import WalletError
from ..services.unified_wallet import UnifiedWallet
from .deps import get_wallet, to_http_error

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/session")


class ConnectRequest(BaseModel):
    """Connection parameters; which ones apply depends on the provider."""

    address: Optional[str] = None  # direct-wallet manual entry
    secret: Optional[str] = None  # legacy-popup secret handoff


class SignRequest(BaseModel):
    xdr: str


def _session_payload(wallet: UnifiedWallet) -> Dict[str, Any]:
    payload = wallet.session.to_dict()
    payload["displayAddress"] = wallet.format_address()
    return payload


@router.get("")
async def get_session(wallet: UnifiedWallet = Depends(get_wallet)) -> Dict[str, Any]:
    return _session_payload(wallet)


@router.get("/adapters")
async def list_adapters(wallet: UnifiedWallet = Depends(get_wallet)) -> Dict[str, Any]:
    return {"adapters": wallet.adapter_states()}


@router.post("/connect/{source}")
async def connect(
    source: str,
    body: Optional[ConnectRequest] = None,
    wallet: UnifiedWallet = Depends(get_wallet),
) -> Dict[str, Any]:
    params = body.model_dump(exclude_none=True) if body else {}
    try:
        await wallet.connect(source, **params)
    except WalletError as exc:
        logger.info("Connect via %s failed: %s", source, exc)
        raise to_http_error(exc) from exc
    return _session_payload(wallet)


@router.post("/logout")
async def logout(wallet: UnifiedWallet = Depends(get_wallet)) -> Dict[str, Any]:
    await wallet.logout()
    return _session_payload(wallet)


@router.post("/refresh")
async def refresh_balance(wallet: UnifiedWallet = Depends(get_wallet)) -> Dict[str, Any]:
    try:
        await wallet.refresh_balance()
    except WalletError as exc:
        raise to_http_error(exc) from exc
    return _session_payload(wallet)


@router.post("/revalidate")
async def revalidate(wallet: UnifiedWallet = Depends(get_wallet)) -> Dict[str, Any]:
    await wallet.revalidate()
    return _session_payload(wallet)


@router.post("/adapters/{source}/retry")
async def retry_adapter(source: str, wallet: UnifiedWallet = Depends(get_wallet)) -> Dict[str, Any]:
    try:
        adapter = wallet.adapter(source)
        await wallet.retry(source)
    except WalletError as exc:
        raise to_http_error(exc) from exc
    return adapter.snapshot()


@router.post("/sign-and-submit")
async def sign_and_submit(body: SignRequest, wallet: UnifiedWallet = Depends(get_wallet)) -> Dict[str, Any]:
    try:
        return await wallet.sign_and_submit(body.xdr)
    except WalletError as exc:
        raise to_http_error(exc) from exc
