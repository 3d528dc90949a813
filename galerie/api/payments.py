from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..core.errors import WalletError
from ..services.unified_wallet import UnifiedWallet
from .deps import get_wallet, to_http_error

router = APIRouter(prefix="/payments")


class BuyRequest(BaseModel):
    # Validated by the payment bridge so that bad amounts fail as InvalidRequest.
    amount: Union[float, str]
    destination: Optional[str] = None
    fiat_currency: Optional[str] = None
    crypto_currency: Optional[str] = None
    email: Optional[str] = None


class BuyNftRequest(BaseModel):
    price_xlm: Union[float, str]
    nft_id: Optional[str] = None
    name: Optional[str] = None
    destination: Optional[str] = None


@router.post("/buy")
async def buy(body: BuyRequest, wallet: UnifiedWallet = Depends(get_wallet)) -> Dict[str, Any]:
    """Open the fiat widget for the connected wallet; returns the widget URL."""
    try:
        widget_url = await wallet.payments.buy(
            body.amount,
            destination=body.destination,
            fiat_currency=body.fiat_currency,
            crypto_currency=body.crypto_currency,
            email=body.email,
        )
    except WalletError as exc:
        raise to_http_error(exc) from exc
    return {"widget_url": widget_url}


@router.post("/buy-nft")
async def buy_nft(body: BuyNftRequest, wallet: UnifiedWallet = Depends(get_wallet)) -> Dict[str, Any]:
    try:
        return await wallet.payments.buy_nft(
            body.price_xlm,
            nft={"id": body.nft_id, "name": body.name},
            destination=body.destination,
        )
    except WalletError as exc:
        raise to_http_error(exc) from exc
