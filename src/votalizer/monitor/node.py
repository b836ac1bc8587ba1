"""
Monitor orchestrator.

Wires the feeder, the processing service, the incident sinks and the
optional diagnostics API together, and runs them with structured
concurrency until a shutdown signal arrives.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from dataclasses import dataclass, field

import aiohttp
import httpx

from votalizer import metrics
from votalizer.api import ApiServer
from votalizer.detector import ViolationDetector
from votalizer.emitter import IncidentEmitter, IncidentLogWriter, WebhookNotifier
from votalizer.feeder import (
    Backoff,
    BoundedChannel,
    FeedItem,
    SubscriptionFeeder,
    SubscriptionUnavailableError,
)
from votalizer.tower import TowerTracker

from .config import MonitorConfig
from .pipeline import VotePipeline
from .service import MonitorService
from .slot_index import SlotAncestryIndex

logger = logging.getLogger(__name__)


def _count_drop(_item: FeedItem) -> None:
    metrics.notifications_dropped.inc()


@dataclass(slots=True)
class Monitor:
    """
    The running monitor.

    Owns every long-lived component. Build one with `from_config`.
    """

    config: MonitorConfig
    """Resolved configuration."""

    feeder: SubscriptionFeeder
    """Producer of the feed."""

    service: MonitorService
    """Consumer of the feed."""

    notifier: WebhookNotifier
    """Chat channels. Also registered as an incident sink."""

    api_server: ApiServer
    """Diagnostics API (possibly disabled)."""

    _shutdown: asyncio.Event = field(default_factory=asyncio.Event)
    """Event signaling shutdown request."""

    @classmethod
    def from_config(
        cls,
        config: MonitorConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> Monitor:
        """
        Create a fully wired monitor.

        Args:
            config: Resolved configuration.
            session: Websocket session for the feeder (created when omitted).
            http_client: HTTP client for webhooks (created when omitted).
        """
        channel: BoundedChannel[FeedItem] = BoundedChannel(
            config.channel_capacity, on_drop=_count_drop
        )
        feeder = SubscriptionFeeder(
            url=config.websocket_url,
            channel=channel,
            idle_timeout=config.idle_timeout,
            backoff=Backoff(initial=config.backoff_initial, max_delay=config.backoff_max),
            session=session,
        )

        notifier = WebhookNotifier(channels=list(config.channels), client=http_client)
        emitter = IncidentEmitter()
        emitter.register(IncidentLogWriter(directory=config.incident_dir))
        if notifier.channels:
            emitter.register(notifier)

        tracker = TowerTracker()
        pipeline = VotePipeline(
            tracker=tracker,
            detector=ViolationDetector(),
            emitter=emitter,
            slot_index=SlotAncestryIndex(),
        )
        service = MonitorService(
            pipeline=pipeline,
            channel=channel,
            workers=config.workers,
            status_interval=config.status_interval,
            evict_after=config.evict_after,
        )

        return cls(
            config=config,
            feeder=feeder,
            service=service,
            notifier=notifier,
            api_server=ApiServer(config=config.api, tracker=tracker),
        )

    async def run(self, *, install_signal_handlers: bool = True) -> None:
        """
        Run until shutdown.

        Args:
            install_signal_handlers: Whether to handle SIGINT/SIGTERM.
                Disable for testing or non-main threads.

        Raises:
            SubscriptionUnavailableError: If the node cannot serve vote
                subscriptions.
        """
        if install_signal_handlers:
            self._install_signal_handlers()

        logger.info("websocket URL: %s", self.config.websocket_url)
        await self.api_server.start()
        await self.notifier.announce_startup()

        try:
            async with asyncio.TaskGroup() as tg:
                tg.create_task(self.feeder.run())
                tg.create_task(self.service.run())
                tg.create_task(self._wait_shutdown())
        except ExceptionGroup as group:
            # Surface the one fatal condition as itself rather than as a group.
            fatal = group.subgroup(SubscriptionUnavailableError)
            if fatal is not None:
                raise fatal.exceptions[0] from None
            raise
        finally:
            await self.api_server.stop()
            await self.notifier.aclose()

    def _install_signal_handlers(self) -> None:
        """
        Install signal handlers for graceful shutdown.

        Handles SIGINT (Ctrl+C) and SIGTERM (process termination).

        Silently ignores errors if handlers cannot be installed.
        This happens in non-main threads or embedded contexts.
        """
        try:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self._shutdown.set)
        except (ValueError, RuntimeError):
            # Cannot add handlers outside main thread.
            pass

    async def _wait_shutdown(self) -> None:
        """
        Wait for shutdown signal then stop the feeder.

        Closing the feeder closes the channel, which lets the service drain
        and exit on its own.
        """
        await self._shutdown.wait()
        logger.info("Shutting down...")
        await self.feeder.stop()

    def stop(self) -> None:
        """Request graceful shutdown."""
        self._shutdown.set()

    @property
    def is_running(self) -> bool:
        """Check if the monitor is currently running."""
        return not self._shutdown.is_set()
