"""Typed domain errors and their HTTP rendering.

Services raise subclasses of :class:`DomainError`; ``add_exception_handlers``
turns them into JSON bodies of the form::

    {"detail": "...", "code": "ORDER_CLOSED", "retryable": false, ...details}
"""
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from libs.common.logging import get_logger, get_request_id

logger = get_logger(__name__)


class DomainError(Exception):
    """Base class for errors that map onto a client-visible HTTP response."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "DOMAIN_ERROR"
    retryable: bool = False

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "detail": self.message,
            "code": self.code,
            "retryable": self.retryable,
        }
        body.update(self.details)
        return body


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "%s on %s %s: %s",
        exc.code,
        request.method,
        request.url.path,
        exc.message,
        extra={"extra_fields": {"code": exc.code, **exc.details}},
    )
    headers = {"Retry-After": "5"} if exc.retryable else None
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_details(exc.to_dict()),
        headers=headers,
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "code": "INTERNAL_ERROR",
            "retryable": False,
            "request_id": get_request_id(),
        },
    )


def jsonable_details(body: dict[str, Any]) -> dict[str, Any]:
    """Stringify values JSONResponse cannot encode (UUIDs, Decimals)."""
    return {
        key: value if isinstance(value, (str, int, float, bool, type(None))) else str(value)
        for key, value in body.items()
    }


def add_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
