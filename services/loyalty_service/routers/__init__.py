"""Loyalty service routers."""

from services.loyalty_service.routers.loyalty import router as loyalty_router
from services.loyalty_service.routers.passkit import router as passkit_router

__all__ = [
    "loyalty_router",
    "passkit_router",
]
