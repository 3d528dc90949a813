"""Shared router helpers: app-scoped services and the wallet error -> HTTP mapping."""

from typing import Dict, Type

from fastapi import HTTPException, Request

from ..config import settings

from ..core.errors import (
    DerivationFailureError,
    InvalidRequestError,
    NetworkError,
    NotFoundError,
    NotReadyError,
    RateLimitedError,
    SubmissionRejectedError,
    WalletError,
)
from ..providers.pinata import PinataProvider
from ..services.unified_wallet import UnifiedWallet
from ..services.wallet_backup import WalletBackupService


_STATUS_BY_ERROR: Dict[Type[WalletError], int] = {
    InvalidRequestError: 400,
    NotFoundError: 404,
    DerivationFailureError: 422,
    RateLimitedError: 429,
    NetworkError: 502,
    SubmissionRejectedError: 502,
    NotReadyError: 503,
}


def get_wallet(request: Request) -> UnifiedWallet:
    wallet = getattr(request.app.state, "wallet", None)
    if wallet is None:
        raise HTTPException(status_code=503, detail="Wallet service not started")
    return wallet


def get_pinata(request: Request) -> PinataProvider:
    pinata = getattr(request.app.state, "pinata", None)
    if pinata is None:
        if not settings.has_pinata_keys:
            raise HTTPException(status_code=503, detail="IPFS pinning is not configured")
        pinata = PinataProvider()
        request.app.state.pinata = pinata
    return pinata


def get_backups(request: Request) -> WalletBackupService:
    backups = getattr(request.app.state, "backups", None)
    if backups is None:
        backups = WalletBackupService(get_pinata(request), get_wallet(request).key_store)
        request.app.state.backups = backups
    return backups


def to_http_error(exc: WalletError) -> HTTPException:
    status_code = next(
        (code for cls, code in _STATUS_BY_ERROR.items() if isinstance(exc, cls)),
        500,
    )
    detail = {
        "error": exc.category.value,
        "message": exc.message,
    }
    if exc.context.suggested_action:
        detail["suggested_action"] = exc.context.suggested_action
    if isinstance(exc, SubmissionRejectedError):
        detail["result_codes"] = exc.result_codes
    if isinstance(exc, NotReadyError):
        detail["rate_limited"] = exc.rate_limited

    headers = None
    if isinstance(exc, RateLimitedError) and exc.retry_after:
        headers = {"Retry-After": str(int(exc.retry_after))}
    return HTTPException(status_code=status_code, detail=detail, headers=headers)
