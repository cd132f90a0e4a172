"""
Bootstrap Orchestrator.

Sequence (strictly sequential, each step awaited before the next)::

    environment file -> settings -> API versions
      -> services (dependency order) -> middlewares
      -> process-wide middlewares (config/http.py)
      -> controllers (resolve + assemble + mount)
      -> API docs routes (optional)
      -> serve, then signal readiness

Two failure channels are kept apart:

- ``fatal_error``: configuration defects found while building. Logged, then
  the process exits with status 1 before any traffic is served.
- ``observe_async_failures``: exceptions escaping background tasks once
  serving. Logged, the process keeps running.
"""

from __future__ import annotations

import asyncio
import logging
import os
import socket
import sys
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional, Union

import uvicorn

from .asgi import Application
from .config import load_api_versions, load_environment, load_http_middlewares, load_settings
from .context import AppContext
from .discovery import ProjectLayout, register_controllers, register_middlewares, register_services
from .faults import Fault
from .registry import CapabilityRegistry
from .routing import Dispatcher, RouterAssembler

logger = logging.getLogger("waypoint.bootstrap")


# ============================================================================
# Failure channels
# ============================================================================

def fatal_error(error: Union[Fault, BaseException, str]) -> NoReturn:
    """Log a bootstrap defect and terminate the process with status 1."""
    if isinstance(error, Fault):
        logger.error(error.message)
    elif isinstance(error, BaseException):
        logger.error("Error while initializing: %s", error, exc_info=error)
    else:
        logger.error(error)
    sys.exit(1)


def observe_async_failures(loop: asyncio.AbstractEventLoop) -> None:
    """Log exceptions nobody awaited instead of letting them pass silently."""

    def handler(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        exc = context.get("exception")
        message = context.get("message", "Unhandled async failure")
        if exc is not None:
            logger.error("unhandledRejection : %s (%s)", exc, message, exc_info=exc)
        else:
            logger.error("unhandledRejection : %s", message)

    loop.set_exception_handler(handler)


def notify_ready(address: Optional[str] = None) -> bool:
    """
    Send ``READY=1`` to the supervisor listening on ``NOTIFY_SOCKET``.

    Returns False when no supervisor is attached.
    """
    address = address or os.environ.get("NOTIFY_SOCKET")
    if not address:
        return False
    if address.startswith("@"):
        address = "\0" + address[1:]

    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM) as sock:
            sock.sendto(b"READY=1", address)
    except OSError as e:
        logger.warning("Could not notify supervisor at %s: %s", address, e)
        return False
    return True


# ============================================================================
# Orchestrator
# ============================================================================

class Bootstrap:
    """
    Builds and serves a Waypoint project.

    Args:
        root: Project root (holds ``.env``, ``config/``, ``controllers/``...)
        env_name: Loads ``.env.<env_name>``; ``None`` loads ``.env``
        docs: Mount the API documentation routes
        host: Interface to bind
        debug: Include exception text in 500 envelopes
    """

    def __init__(
        self,
        root: Union[str, Path] = ".",
        env_name: Optional[str] = None,
        *,
        docs: bool = False,
        host: str = "0.0.0.0",
        debug: bool = False,
    ):
        self.layout = ProjectLayout.at(root)
        self.env_name = env_name
        self.docs = docs
        self.host = host
        self.debug = debug
        self.registry = CapabilityRegistry()

    async def build(self) -> Application:
        """Run every bootstrap step; raises on the first defect."""
        load_environment(self.layout, self.env_name)
        config = load_settings(self.layout)
        versions = load_api_versions(self.layout)

        register_services(self.registry, self.layout.services_dir)
        services = await self.registry.initialize_services(config)
        register_middlewares(self.registry, self.layout.middlewares_dir)

        ctx = AppContext(services=services, config=config)
        dispatcher = Dispatcher(ctx, debug=self.debug)
        for middleware in load_http_middlewares(self.layout):
            dispatcher.use(middleware)

        register_controllers(self.registry, self.layout.controllers_dir)
        assembler = RouterAssembler(self.registry, ctx, versions, dispatcher)
        assembler.mount_all(self.registry.controllers)

        if self.docs:
            from .codegen.openapi import mount_docs

            mount_docs(dispatcher, self.layout, config, versions)

        return Application(dispatcher, ctx)

    async def serve(self, app: Application) -> None:
        port = app.ctx.config.port
        server = uvicorn.Server(uvicorn.Config(
            app,
            host=self.host,
            port=port,
            log_level="warning",
            access_log=False,
        ))
        serve_task = asyncio.create_task(server.serve())

        while not server.started and not serve_task.done():
            await asyncio.sleep(0.05)

        if server.started:
            logger.info("Listening on %d", port)
            notify_ready()
        await serve_task

    async def _main(self) -> None:
        observe_async_failures(asyncio.get_running_loop())
        try:
            app = await self.build()
        except Exception as e:
            fatal_error(e)
        await self.serve(app)

    def run(self) -> None:
        """Build and serve until interrupted; exits with status 1 on a bootstrap defect."""
        asyncio.run(self._main())
