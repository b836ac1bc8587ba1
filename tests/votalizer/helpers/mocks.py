"""Test doubles for sinks and clocks."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from votalizer.detector import Incident


@dataclass
class RecordingSink:
    """Sink that keeps every incident it receives."""

    name: str = "recording"
    delivered: list[Incident] = field(default_factory=list)

    async def deliver(self, incident: Incident) -> None:
        self.delivered.append(incident)


@dataclass
class FailingSink:
    """Sink that always raises."""

    name: str = "failing"
    attempts: int = 0

    async def deliver(self, incident: Incident) -> None:
        self.attempts += 1
        raise RuntimeError("sink unavailable")


@dataclass
class SlowSink:
    """Sink that takes a while, then records."""

    delay: float = 0.05
    name: str = "slow"
    delivered: list[Incident] = field(default_factory=list)

    async def deliver(self, incident: Incident) -> None:
        await asyncio.sleep(self.delay)
        self.delivered.append(incident)


@dataclass
class FakeClock:
    """Manually advanced monotonic clock."""

    now: float = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
