"""Global exception handlers giving every error response the same shape.

Bodies are ``{"error": <short title>, "detail": <specifics>}``. HTTP
exceptions may carry their own title in an ``error`` attribute.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from libs.common.logging import get_logger, get_request_id
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = get_logger(__name__)


def error_body(error: str, detail=None) -> dict:
    body = {"error": error, "detail": detail}
    request_id = get_request_id()
    if request_id:
        body["request_id"] = request_id
    return body


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    error = getattr(exc, "error", None) or "Request failed"
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed with %s: %s",
            request.method,
            request.url.path,
            exc.status_code,
            exc.detail,
            exc_info=exc.__cause__ is not None,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(error, exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Malformed bodies are client errors like any other bad input
    fields = [".".join(str(part) for part in err["loc"]) for err in exc.errors()]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Invalid request", f"Missing or invalid: {', '.join(fields)}"),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error"),
    )


def add_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
