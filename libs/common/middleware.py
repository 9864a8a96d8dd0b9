"""Request tracing middleware.

Every request gets an ``X-Request-ID`` (taken from the caller or generated),
bound to the logging context for the lifetime of the request and echoed back
on the response.

Usage:
    from libs.common.middleware import add_observability_middleware

    app = FastAPI()
    add_observability_middleware(app)
"""
import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from libs.common.logging import (
    clear_request_context,
    configure_logging,
    get_logger,
    set_request_context,
)

logger = get_logger(__name__)

_QUIET_PATHS = {"/health"}


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request context for log correlation and log request timing."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = set_request_context(
            request_id=request.headers.get("X-Request-ID"),
            path=request.url.path,
            method=request.method,
        )
        quiet = request.url.path in _QUIET_PATHS
        start_time = time.perf_counter()

        if not quiet:
            logger.info(
                "Request started",
                extra={"extra_fields": {"query": request.url.query or None}},
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "Request failed with unhandled exception",
                extra={
                    "extra_fields": {
                        "error": str(e),
                        "duration_ms": _elapsed_ms(start_time),
                    }
                },
            )
            raise
        else:
            if not quiet:
                log = logger.warning if response.status_code >= 400 else logger.info
                log(
                    "Request completed",
                    extra={
                        "extra_fields": {
                            "status_code": response.status_code,
                            "duration_ms": _elapsed_ms(start_time),
                        }
                    },
                )
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_request_context()


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)


def add_observability_middleware(app: FastAPI) -> None:
    """
    Configure logging and install the request context middleware.

    Call this right after creating the app.
    """
    configure_logging()
    app.add_middleware(RequestContextMiddleware)
    logger.info("Observability middleware initialized")
