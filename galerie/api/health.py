from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..core.session import AdapterStatus
from ..services.unified_wallet import UnifiedWallet
from .deps import get_wallet

router = APIRouter()


@router.get("/healthz")
async def health_check(wallet: UnifiedWallet = Depends(get_wallet)) -> Dict[str, Any]:
    """Health check endpoint that verifies provider and adapter status"""

    provider_status = {
        "horizon": await wallet.ledger.health_check(),
        "moonpay": await wallet.payments.widget.health_check(),
    }

    adapters = {adapter.id: adapter.get_status().value for adapter in wallet.adapters}
    ready_adapters = sum(1 for adapter in wallet.adapters if adapter.get_status() == AdapterStatus.READY)

    # Determine overall health
    all_healthy = all(
        status["status"] in ["healthy", "unavailable"]
        for status in provider_status.values()
    )

    return {
        "status": "healthy" if all_healthy and ready_adapters > 0 else "degraded",
        "providers": provider_status,
        "adapters": adapters,
        "ready_adapters": ready_adapters,
        "total_adapters": len(adapters),
    }
