"""Forwarding service routers."""

from services.forwarding_service.routers.catalog import router as catalog_router
from services.forwarding_service.routers.customs import router as customs_router
from services.forwarding_service.routers.messages import router as messages_router
from services.forwarding_service.routers.offers import router as offers_router
from services.forwarding_service.routers.orders import router as orders_router
from services.forwarding_service.routers.payments import router as payments_router
from services.forwarding_service.routers.tracking import router as tracking_router
from services.forwarding_service.routers.wallet import router as wallet_router

__all__ = [
    "catalog_router",
    "customs_router",
    "messages_router",
    "offers_router",
    "orders_router",
    "payments_router",
    "tracking_router",
    "wallet_router",
]
