"""Command-line runner that exits non-zero after a fatal request error."""

from __future__ import annotations

import sys

import uvicorn

from share_gateway.core.config import get_settings
from share_gateway.core.logging import get_logger
from share_gateway.main import app

logger = get_logger(__name__)


def run() -> None:
    settings = get_settings()

    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        proxy_headers=True,
        forwarded_allow_ips="*",
        log_config=None,
    )
    server = uvicorn.Server(config)
    app.state.fatal_handler.attach(server)

    logger.info("Server starting", extra={"host": settings.host, "port": settings.port})
    server.run()

    exit_code = app.state.fatal_handler.exit_code
    if exit_code:
        logger.error("Server stopped after a fatal error", extra={"exit_code": exit_code})
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
