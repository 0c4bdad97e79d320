"""FastAPI exception handlers for converting PaymentError to HTTP responses.

The ErrorCode-to-HTTP status mapping:
- 400 Bad Request: invalid amount, invalid request, bad callback signature
- 404 Not Found: unknown reference id
- 502 Bad Gateway: PayU unreachable or rejected the call
- 503 Service Unavailable: merchant credentials not configured

Usage:
    from paylink_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from paylink.models import ErrorCode, PaymentError

logger = logging.getLogger(__name__)

# Map ErrorCode to HTTP status codes
ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.CONFIGURATION_MISSING: HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.INVALID_SIGNATURE: HTTP_400_BAD_REQUEST,
    ErrorCode.GATEWAY_UNAVAILABLE: HTTP_502_BAD_GATEWAY,
    ErrorCode.TRANSACTION_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.INVALID_AMOUNT: HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_REQUEST: HTTP_400_BAD_REQUEST,
}


def get_http_status_for_error(code: ErrorCode) -> int:
    """Get HTTP status code for an ErrorCode, defaulting to 400."""
    return ERROR_CODE_TO_HTTP_STATUS.get(code, HTTP_400_BAD_REQUEST)


async def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
    """Convert a PaymentError into an ErrorResponse body.

    Args:
        request: The incoming request (unused but required by FastAPI)
        exc: The PaymentError exception

    Returns:
        JSONResponse with error details and the mapped status code.
    """
    status_code = get_http_status_for_error(exc.code)
    return JSONResponse(
        status_code=status_code,
        content=exc.to_response().model_dump(mode="json"),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback for uncaught exceptions; internal details are not exposed."""
    logger.exception("Unhandled exception: %s", exc)

    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error_code": "ERR_INTERNAL",
            "message": "An unexpected error occurred",
            "recovery": "Please try again later or contact support",
            "details": None,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(PaymentError, payment_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)
