from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from share_gateway.api.routers import health, metrics, share
from share_gateway.core.config import get_settings
from share_gateway.core.exceptions import GatewayError
from share_gateway.core.lifecycle import FatalErrorHandler
from share_gateway.core.logging import configure_logging, get_logger
from share_gateway.core.security import KeyMaterial, SessionCipher
from share_gateway.middleware import errors, logging
from share_gateway.middleware.cors import PermissiveCORSMiddleware
from share_gateway.middleware.metrics import PrometheusMiddleware
from share_gateway.middleware.session import ShareSessionMiddleware
from share_gateway.services.immich_client import ImmichClient

tags_metadata = [
    {"name": "meta", "description": "Liveness endpoints"},
    {"name": "share", "description": "Password gate, asset streaming and gallery listing"},
    {"name": "metrics", "description": "Prometheus metrics"},
]


def build_app(
    transport: httpx.AsyncBaseTransport | None = None,
    signal_unattached: bool = False,
) -> FastAPI:
    """Assemble the gateway.

    Args:
        transport: Optional httpx transport for the backend client; tests pass
            an ``httpx.MockTransport`` here.
        signal_unattached: Make a fatal error SIGTERM the process when no
            server was attached to the fatal handler.
    """
    settings = get_settings()

    configure_logging(log_level=settings.log_level, log_format=settings.log_format)
    logger = get_logger(__name__)
    logger.info(
        "Starting share gateway",
        extra={"version": settings.api_version, "immich_url": settings.immich_url},
    )

    # Generated per process: every restart invalidates outstanding sessions and unlocks
    keys = KeyMaterial.generate()
    fatal_handler = FatalErrorHandler(signal_unattached=signal_unattached)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        fatal_handler.install(asyncio.get_running_loop())
        async with httpx.AsyncClient(
            timeout=settings.backend_timeout_seconds, transport=transport
        ) as http:
            app.state.immich = ImmichClient(http, settings.immich_api_url)
            yield
        logger.info("Share gateway stopped")

    app = FastAPI(
        title=settings.project_name,
        version=settings.api_version,
        openapi_tags=tags_metadata,
        description="""
## Immich Share Gateway

Public read-only view of Immich shared links.

* **Password gate** - share passwords are kept encrypted in an HttpOnly session cookie
* **Asset streaming** - photos in thumbnail/preview/original sizes, videos with Range support
* **Gallery listing** - paginated JSON of a share's media URLs
        """,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.keys = keys
    app.state.cipher = SessionCipher(keys.credential_key)
    app.state.fatal_handler = fatal_handler

    # Last added = outermost
    app.add_middleware(
        ShareSessionMiddleware,
        keys=keys,
        cookie_name=settings.session_cookie_name,
        secure=settings.session_cookie_secure,
    )
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(logging.RequestLoggingMiddleware)
    app.add_middleware(PermissiveCORSMiddleware)

    app.add_exception_handler(StarletteHTTPException, errors.http_exception_handler)
    app.add_exception_handler(RequestValidationError, errors.validation_exception_handler)
    app.add_exception_handler(GatewayError, errors.gateway_exception_handler)
    app.add_exception_handler(Exception, errors.general_exception_handler)

    # Routes are matched in registration order; the fallback must stay last
    app.include_router(health.router)
    if settings.metrics_enabled:
        app.include_router(metrics.router)
    app.include_router(share.router)
    if settings.show_home_page:
        share.register_home_page(app.router)
    app.include_router(share.fallback_router)

    return app


# Served directly by uvicorn or through server.run
app = build_app(signal_unattached=True)
