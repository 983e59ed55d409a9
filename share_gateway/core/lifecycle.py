"""Process shutdown on errors that escape request handling."""

from __future__ import annotations

import asyncio
import os
import signal
from typing import Any, Protocol

from share_gateway.core.logging import get_logger

logger = get_logger(__name__)


class StoppableServer(Protocol):
    should_exit: bool


class FatalErrorHandler:
    """Stops the server and records a non-zero exit code on the first fatal error.

    Handler state after an unexpected exception cannot be trusted, so the
    process stops accepting connections and exits instead of carrying on.

    The console runner attaches its uvicorn server. An app served any other
    way (for example ``uvicorn share_gateway.main:app``) has no server to
    stop; with ``signal_unattached`` the process sends itself SIGTERM instead,
    which the serving process handles as a normal shutdown.
    """

    def __init__(self, signal_unattached: bool = False) -> None:
        self.server: StoppableServer | None = None
        self.exit_code = 0
        self.signal_unattached = signal_unattached

    @property
    def triggered(self) -> bool:
        return self.exit_code != 0

    def attach(self, server: StoppableServer) -> None:
        self.server = server

    def trigger(self, reason: str, exc: BaseException | None = None) -> None:
        logger.critical(
            "Fatal error, shutting down",
            exc_info=exc,
            extra={"reason": reason},
        )
        if self.triggered:
            return
        self.exit_code = 1
        if self.server is not None:
            self.server.should_exit = True
        elif self.signal_unattached:
            os.kill(os.getpid(), signal.SIGTERM)

    def install(self, loop: asyncio.AbstractEventLoop) -> None:
        """Treat exceptions nobody awaited (orphaned tasks, callbacks) as fatal."""

        def handle(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
            exc = context.get("exception")
            self.trigger(context.get("message", "Unhandled exception in event loop"), exc)

        loop.set_exception_handler(handle)
