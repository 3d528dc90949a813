"""
Webhook API Endpoints

Receive payment notifications from MoonPay.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel

from ..providers.moonpay import verify_webhook_signature
from ..services.unified_wallet import UnifiedWallet
from .deps import get_wallet

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks")


class WebhookResponse(BaseModel):
    """Response after processing a webhook."""

    success: bool
    completed: bool = False
    message: Optional[str] = None


@router.post("/moonpay", response_model=WebhookResponse)
async def moonpay_webhook(
    request: Request,
    x_moonpay_signature: Optional[str] = Header(None, alias="X-MoonPay-Signature"),
    wallet: UnifiedWallet = Depends(get_wallet),
):
    """
    Receive MoonPay transaction webhooks.

    The body must carry a valid HMAC signature; completed purchases are fanned
    out to payment listeners and trigger a balance refresh.
    """
    body = await request.body()
    if not verify_webhook_signature(body, x_moonpay_signature):
        logger.warning("Rejected MoonPay webhook with invalid signature")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Webhook body must be an object")

    completed = await wallet.payments.handle_completed(payload)
    return WebhookResponse(
        success=True,
        completed=completed,
        message="Payment processed" if completed else "Event ignored",
    )
