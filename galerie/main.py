from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import backups, health, metadata, payments, session, webhooks
from .config import settings
from .logging_config import setup_logging
from .providers.pinata import PinataProvider
from .services.unified_wallet import UnifiedWallet


def create_app(
    wallet: Optional[UnifiedWallet] = None,
    pinata: Optional[PinataProvider] = None,
) -> FastAPI:
    """Build the API; the wallet is created on startup unless one is supplied."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        service = app.state.wallet or UnifiedWallet()
        app.state.wallet = service
        await service.start()
        try:
            yield
        finally:
            await service.stop()

    app = FastAPI(
        title="Galerie Wallet API",
        description="Unified wallet session service for the Galerie NFT marketplace",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.wallet = wallet
    app.state.pinata = pinata
    app.state.backups = None

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(session.router, tags=["Session"])
    app.include_router(payments.router, tags=["Payments"])
    app.include_router(webhooks.router, tags=["Webhooks"])
    app.include_router(metadata.router, tags=["Metadata"])
    app.include_router(backups.router, tags=["Backups"])

    @app.get("/")
    async def root():
        """Root endpoint with basic info"""
        return {
            "name": "Galerie Wallet API",
            "version": "0.1.0",
            "network": settings.stellar_network,
            "docs": "/docs",
            "health": "/healthz",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "galerie.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
