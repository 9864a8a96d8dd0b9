"""FastAPI application for the Forwarding Service."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from libs.common.config import get_settings
from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from services.forwarding_service.routers import (
    catalog_router,
    customs_router,
    messages_router,
    offers_router,
    orders_router,
    payments_router,
    tracking_router,
    wallet_router,
)
from slowapi.errors import RateLimitExceeded

settings = get_settings()


def create_app() -> FastAPI:
    """Create and configure the Forwarding Service FastAPI app."""
    app = FastAPI(
        title="DParcel Forwarding Service",
        version="0.1.0",
        description="Orders, shipper offers, payments, tracking and messaging "
        "for the DParcel package-forwarding marketplace.",
    )

    add_observability_middleware(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "forwarding"}

    app.include_router(catalog_router)
    app.include_router(orders_router)
    app.include_router(offers_router)
    app.include_router(tracking_router)
    app.include_router(payments_router)
    app.include_router(wallet_router)
    app.include_router(messages_router)
    app.include_router(customs_router)

    return app


app = create_app()
