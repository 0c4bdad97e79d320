"""ASGI entry points for the Paylink API.

``app`` serves uvicorn, ``handler`` serves AWS Lambda behind API Gateway.
All PayU routes live under ``/api/payu``.
"""

import logging
import os
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from paylink import __version__
from paylink.utils.logging import configure_logging
from paylink_api.exceptions import register_exception_handlers
from paylink_api.middleware.correlation import (
    CORRELATION_ID_HEADER,
    CorrelationIdMiddleware,
)
from paylink_api.routes import callbacks_router, payments_router

API_PREFIX = "/api/payu"
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"

logger = logging.getLogger(__name__)


def cors_origins() -> list[str]:
    """Origins from CORS_ALLOW_ORIGINS (comma separated)."""
    raw = os.getenv("CORS_ALLOW_ORIGINS", DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def create_app() -> FastAPI:
    configure_logging(logging.INFO)
    application = FastAPI(
        title="Paylink API",
        description="PayU payment initiation, callback reconciliation and verification",
        version=__version__,
    )

    # Only the storefront calls the JSON routes; PayU callbacks are form posts
    application.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=[CORRELATION_ID_HEADER],
    )
    application.add_middleware(CorrelationIdMiddleware)
    register_exception_handlers(application)

    application.include_router(payments_router, prefix=API_PREFIX)
    application.include_router(callbacks_router, prefix=API_PREFIX)

    @application.get("/api/ping")
    async def ping() -> dict[str, Any]:
        return {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat(),
            "service": "paylink-api",
            "version": __version__,
        }

    return application


app = create_app()

handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int = 8080, reload: bool = False) -> None:
    """Serve ``app`` with uvicorn. Reload mode needs the import string."""
    import uvicorn

    logger.info("Starting Paylink API on %s:%d", host, port)
    if reload:
        uvicorn.run("paylink_api.main:app", host=host, port=port, reload=True)
    else:
        uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server(reload=os.getenv("ENVIRONMENT", "dev") == "dev")
