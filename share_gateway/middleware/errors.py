from __future__ import annotations

from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from share_gateway.api.responses import invalid_response
from share_gateway.core.exceptions import GatewayError
from share_gateway.core.logging import get_logger

logger = get_logger(__name__)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """Answer framework HTTP errors without a body."""
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        logger.info("Invalid route", extra={"path": request.url.path})
        return invalid_response()
    return Response(status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> Response:
    """Malformed input is reported the same way as anything else that was not found."""
    logger.info(
        "Invalid request parameters",
        extra={"path": request.url.path, "method": request.method},
    )
    return invalid_response()


async def gateway_exception_handler(request: Request, exc: GatewayError) -> Response:
    """Validation, resolution and streaming failures all collapse into one empty 404."""
    logger.info(
        "Rejected share request",
        extra={
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "error_message": str(exc),
            "request_id": getattr(request.state, "request_id", None),
        },
    )
    return invalid_response()


async def general_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle unexpected errors by answering 500 and stopping the process."""
    logger.exception(
        "Unexpected error",
        extra={
            "error_type": type(exc).__name__,
            "error_message": str(exc),
            "endpoint": request.url.path,
            "method": request.method,
            "request_id": getattr(request.state, "request_id", None),
        },
    )
    fatal_handler = getattr(request.app.state, "fatal_handler", None)
    if fatal_handler is not None:
        fatal_handler.trigger("Unhandled exception in request handler", exc)
    return Response(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
