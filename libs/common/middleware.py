"""Request tracing for the loyalty API.

Every request gets an ``X-Request-ID`` (propagated when the caller sent one)
and one completion log line carrying status and latency. Point-of-sale calls
may name the staff member with ``X-Employee-Id``; it is attached to every
log record emitted while the request runs.
"""
import logging
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

# Polled by load balancers and by Apple devices; not worth a line each
QUIET_PATHS = frozenset({"/health", "/pass/v1/log"})


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds request id, path and acting employee to the logging context."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = set_request_context(
            request_id=request.headers.get("X-Request-ID"),
            path=request.url.path,
            method=request.method,
            employee_id=request.headers.get("X-Employee-Id"),
        )
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception(
                "Request failed with unhandled exception",
                extra={"extra_fields": {
                    "error": str(exc),
                    "duration_ms": _elapsed_ms(started),
                }},
            )
            raise
        else:
            if request.url.path not in QUIET_PATHS:
                level = logging_level_for(response.status_code)
                logger.log(
                    level,
                    "Request completed",
                    extra={"extra_fields": {
                        "status_code": response.status_code,
                        "duration_ms": _elapsed_ms(started),
                    }},
                )
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_request_context()


def logging_level_for(status_code: int) -> int:
    """Server errors are errors, rejected requests are warnings."""
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


def add_observability_middleware(app: FastAPI) -> None:
    """Configure logging and install request tracing on ``app``."""
    configure_logging()
    app.add_middleware(RequestContextMiddleware)
    logger.info("Observability middleware initialized")
