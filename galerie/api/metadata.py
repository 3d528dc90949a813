from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..core.errors import WalletError
from ..providers.pinata import PinataProvider
from .deps import get_pinata, to_http_error

router = APIRouter(prefix="/metadata")


class PinRequest(BaseModel):
    """NFT metadata document to pin."""

    content: Dict[str, Any]
    name: Optional[str] = None
    keyvalues: Dict[str, str] = Field(default_factory=dict)


@router.post("/pin")
async def pin_metadata(body: PinRequest, pinata: PinataProvider = Depends(get_pinata)) -> Dict[str, Any]:
    try:
        return await pinata.pin_json(body.content, {"name": body.name, "keyvalues": body.keyvalues})
    except WalletError as exc:
        raise to_http_error(exc) from exc
