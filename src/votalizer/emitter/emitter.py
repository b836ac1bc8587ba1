"""
Incident emitter.

Hands every incident, once, to all registered sinks. Sinks run concurrently
and independently: a sink that fails or hangs affects neither the other sinks
nor the tower state that produced the incident.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

from votalizer import metrics
from votalizer.detector import Incident

logger = logging.getLogger(__name__)


class IncidentSink(Protocol):
    """A collaborator that receives incidents."""

    name: str
    """Short identifier used in logs and metrics."""

    async def deliver(self, incident: Incident) -> None:
        """Deliver one incident. May raise; the emitter isolates failures."""
        ...


@dataclass(slots=True)
class IncidentEmitter:
    """Publishes incidents to a fixed set of sinks."""

    sinks: list[IncidentSink] = field(default_factory=list)
    """Registered sinks."""

    published: int = field(default=0, init=False)
    """Incidents published since startup."""

    def register(self, sink: IncidentSink) -> None:
        """Add a sink. Incidents published afterwards are delivered to it."""
        self.sinks.append(sink)

    async def publish(self, incident: Incident) -> None:
        """
        Deliver an incident to every sink.

        Never raises because of a sink. Failures are logged and counted per sink.
        """
        self.published += 1
        results = await asyncio.gather(
            *(sink.deliver(incident) for sink in self.sinks),
            return_exceptions=True,
        )
        for sink, result in zip(self.sinks, results, strict=True):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                metrics.notifier_failures.labels(sink=sink.name).inc()
                logger.error(
                    "Sink %s failed to deliver incident %s: %r",
                    sink.name,
                    incident.transaction_signature,
                    result,
                )
