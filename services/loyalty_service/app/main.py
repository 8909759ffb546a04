"""FastAPI application for the Loyalty Service."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from libs.common.config import get_settings
from libs.common.error_handler import add_exception_handlers
from libs.common.logging import get_logger
from libs.common.middleware import add_observability_middleware
from libs.db.config import AsyncSessionLocal
from services.loyalty_service.routers import loyalty_router, passkit_router
from services.loyalty_service.services.wallets.sync import (
    WalletSyncOrchestrator,
    build_wallet_sync,
)

logger = get_logger(__name__)


def create_app(wallet_sync: Optional[WalletSyncOrchestrator] = None) -> FastAPI:
    """Create and configure the Loyalty Service FastAPI app.

    ``wallet_sync`` replaces the bundle built from settings at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "wallet_sync", None) is None:
            app.state.wallet_sync = build_wallet_sync(get_settings(), AsyncSessionLocal)
        logger.info("Loyalty service started")
        yield
        logger.info("Loyalty service stopped")

    app = FastAPI(
        title="Vigo Loyalty Service",
        version="0.1.0",
        description="Points ledger, reward redemption and wallet pass sync.",
        lifespan=lifespan,
    )
    if wallet_sync is not None:
        app.state.wallet_sync = wallet_sync

    # Add observability (structured logging + request tracing)
    add_observability_middleware(app)

    # Consistent {"error", "detail"} bodies
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "loyalty"}

    app.include_router(loyalty_router)

    # Apple Wallet device web service
    app.include_router(passkit_router)

    return app


app = create_app()
