"""
Durable incident records.

Every incident becomes one file, named after the validator and the violating
transaction so a re-delivery overwrites the same record instead of
duplicating it. The file holds a readable header, the full report and a
final JSON line with the complete evidence.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from votalizer.detector import Incident

logger = logging.getLogger(__name__)


def incident_filename(incident: Incident) -> str:
    """File name of an incident's record."""
    return f"incident-{incident.validator_id}-{incident.transaction_signature}.log"


def render_record(incident: Incident) -> str:
    """Full text of an incident's record."""
    header = [
        f"validator: {incident.validator_id}",
        f"kind: {incident.kind}",
        f"slots: {', '.join(str(slot) for slot in incident.slots)}",
        f"signature: {incident.transaction_signature}",
        f"detected at: {incident.detected_at.isoformat()}",
        "",
    ]
    return (
        "\n".join(header)
        + incident.explanation
        + "\n"
        + incident.model_dump_json(by_alias=True)
        + "\n"
    )


@dataclass(slots=True)
class IncidentLogWriter:
    """Writes one record file per incident into a directory."""

    directory: Path
    """Directory holding incident records. Created on first write."""

    name: str = "log"
    """Sink identifier."""

    async def deliver(self, incident: Incident) -> None:
        """Write the incident's record without blocking the event loop."""
        path = await asyncio.to_thread(self._write, incident)
        logger.info("Incident written to %s", path)

    def _write(self, incident: Incident) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / incident_filename(incident)
        path.write_text(render_record(incident), encoding="utf-8")
        return path
