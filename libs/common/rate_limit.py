"""Rate limiting for the DParcel API.

Uses slowapi; state lives in ``REDIS_URL`` (``memory://`` for a single
process). Limiting is switched off entirely with ``RATE_LIMIT_ENABLED=false``.
"""

from functools import lru_cache
from typing import Callable

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from libs.common.config import get_settings


def _get_client_ip(request: Request) -> str:
    """
    Client IP, honouring the first hop of X-Forwarded-For when proxied.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


def _get_user_or_ip(request: Request) -> str:
    """
    Rate limit by user ID if authenticated, otherwise by IP.
    """
    user = getattr(request.state, "user", None)
    if user is not None:
        return f"user:{user.user_id}"
    return f"ip:{_get_client_ip(request)}"


@lru_cache
def get_limiter() -> Limiter:
    settings = get_settings()
    return Limiter(
        key_func=_get_user_or_ip,
        default_limits=["100/minute"],
        storage_uri=settings.REDIS_URL,
        strategy="fixed-window",
        enabled=settings.RATE_LIMIT_ENABLED,
    )


limiter = get_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """
    JSON 429 with a Retry-After header.
    """
    retry_after = exc.detail.split("per")[0].strip() if exc.detail else "1 minute"

    return JSONResponse(
        status_code=429,
        content={
            "detail": f"Rate limit exceeded. Try again in {retry_after}.",
            "code": "RATE_LIMIT_EXCEEDED",
            "retryable": True,
        },
        headers={"Retry-After": str(getattr(exc, "retry_after", 60))},
    )


def write_limit(func: Callable) -> Callable:
    """Limit for user-generated writes such as bids and messages (30/minute)."""
    return limiter.limit("30/minute")(func)


def payment_limit(func: Callable) -> Callable:
    """Strict limit for payment initiation (5/minute)."""
    return limiter.limit("5/minute")(func)
