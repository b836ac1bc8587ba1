"""
Monitor service.

Consumes the feed channel and spreads votes over worker tasks.

ORDERING
--------
The dispatcher reads the channel in order and routes every vote to the
worker that owns its validator (a stable hash of the validator identity).
Each worker handles its queue in order, so votes of one validator are always
applied in feed order. Votes of different validators proceed concurrently.

BACKPRESSURE
------------
Worker queues are bounded. When a worker falls behind, the dispatcher waits
for it, the feed channel fills up, and the channel starts dropping its
oldest notifications. Memory stays bounded and every drop is counted.

SHUTDOWN
--------
When the feeder stops, it closes the channel. The dispatcher drains what is
buffered, then tells each worker to finish. Workers empty their queues
before exiting, so no accepted notification is abandoned halfway.
"""

from __future__ import annotations

import asyncio
import logging
import zlib
from dataclasses import dataclass, field
from typing import Final

from votalizer.containers import Pubkey, Vote
from votalizer.feeder import BoundedChannel, FeedItem

from .pipeline import VotePipeline

logger = logging.getLogger(__name__)

WORKER_QUEUE_SIZE: Final = 1024
"""Votes buffered per worker before the dispatcher waits."""


def shard_of(validator_id: Pubkey, shards: int) -> int:
    """Worker index owning a validator. Stable across processes."""
    return zlib.crc32(validator_id) % shards


@dataclass(slots=True)
class MonitorService:
    """Dispatches feed items to per-validator workers and reports status."""

    pipeline: VotePipeline
    """Processing stages."""

    channel: BoundedChannel[FeedItem]
    """Feed produced by the subscription feeder."""

    workers: int = 4
    """Number of worker tasks."""

    status_interval: float = 30.0
    """Seconds between status reports."""

    evict_after: float | None = None
    """Forget validators idle this long, checked at every status report."""

    queue_size: int = WORKER_QUEUE_SIZE
    """Per-worker queue bound."""

    _running: bool = field(default=False, init=False, repr=False)

    async def run(self) -> None:
        """Process the feed until the channel is closed and drained."""
        if self.workers < 1:
            raise ValueError(f"workers must be positive, got {self.workers}")

        self._running = True
        queues: list[asyncio.Queue[Vote | None]] = [
            asyncio.Queue(maxsize=self.queue_size) for _ in range(self.workers)
        ]

        try:
            async with asyncio.TaskGroup() as tg:
                for index, queue in enumerate(queues):
                    tg.create_task(self._work(index, queue))
                reporter = tg.create_task(self._report_status())
                await self._dispatch(queues)
                for queue in queues:
                    await queue.put(None)
                reporter.cancel()
        finally:
            self._running = False
            logger.info(self.status_line())

    async def _dispatch(self, queues: list[asyncio.Queue[Vote | None]]) -> None:
        async for item in self.channel:
            vote = self.pipeline.route(item)
            if vote is not None:
                await queues[shard_of(vote.validator_id, len(queues))].put(vote)

    async def _work(self, index: int, queue: asyncio.Queue[Vote | None]) -> None:
        while (vote := await queue.get()) is not None:
            try:
                await self.pipeline.process(vote)
            except Exception:
                # A failing vote is logged and skipped; the worker keeps its validators.
                logger.exception(
                    "Worker %d failed on vote %s from %s",
                    index,
                    vote.transaction_signature,
                    vote.validator_id,
                )
            # Give the dispatcher and other workers a turn.
            await asyncio.sleep(0)

    async def _report_status(self) -> None:
        while True:
            await asyncio.sleep(self.status_interval)
            if self.evict_after is not None:
                evicted = self.pipeline.tracker.evict_idle(self.evict_after)
                if evicted:
                    logger.info("Evicted %d idle validators", len(evicted))
            logger.info(self.status_line())

    def status_line(self) -> str:
        """One-line summary of the monitor's progress."""
        line = (
            f"tracking {len(self.pipeline.tracker)} validators, "
            f"{self.pipeline.votes_processed} votes processed"
        )
        incidents = self.pipeline.detector.incidents_observed
        if incidents == 1:
            line += ", 1 incident observed"
        elif incidents > 1:
            line += f", {incidents} incidents observed"
        return line

    @property
    def is_running(self) -> bool:
        """Whether `run` is in progress."""
        return self._running
