"""
Diagnostics API server.

Provides HTTP endpoints for:
- /health - Health check endpoint
- /metrics - Prometheus metrics endpoint
- /towers - Tracked validators
- /towers/{validator} - Current tower of one validator

Every read is a lock-free snapshot; serving the API never delays a tower update.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from aiohttp import web

from votalizer.tower import TowerTracker

from .endpoints.towers import TRACKER_KEY
from .routes import ROUTES

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ApiServerConfig:
    """Configuration for the API server."""

    host: str = "127.0.0.1"
    """Host address to bind to."""

    port: int = 9090
    """Port to listen on."""

    enabled: bool = False
    """Whether the API server is enabled."""


def create_app(tracker: TowerTracker) -> web.Application:
    """Build the aiohttp application serving `tracker`."""
    app = web.Application()
    app[TRACKER_KEY] = tracker
    app.add_routes([web.get(path, handler) for path, handler in ROUTES.items()])
    return app


@dataclass(slots=True)
class ApiServer:
    """
    HTTP API server for health checks, metrics and tower inspection.

    Uses aiohttp to handle HTTP protocol details efficiently.
    """

    config: ApiServerConfig
    """Server configuration."""

    tracker: TowerTracker
    """Tracker whose towers are served."""

    _runner: web.AppRunner | None = field(default=None, init=False)
    """The aiohttp application runner."""

    _site: web.TCPSite | None = field(default=None, init=False)
    """The TCP site for the server."""

    async def start(self) -> None:
        """Start the API server in the background."""
        if not self.config.enabled:
            logger.info("API server is disabled")
            return

        self._runner = web.AppRunner(create_app(self.tracker))
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await self._site.start()

        logger.info(f"API server listening on {self.config.host}:{self.config.port}")

    async def run(self) -> None:
        """
        Run the API server until shutdown.

        This method blocks until stop() is called.
        """
        await self.start()

        # Keep running until stopped
        while self._runner is not None:
            await asyncio.sleep(1)

    async def stop(self) -> None:
        """Gracefully stop the server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            logger.info("API server stopped")
