"""Tests for incident fan-out."""

from __future__ import annotations

import pytest

from tests.votalizer.helpers import FailingSink, RecordingSink, SlowSink, make_incident
from votalizer.emitter import IncidentEmitter
from votalizer.metrics import REGISTRY


def _failures(sink: str) -> float:
    value = REGISTRY.get_sample_value("votalizer_notifier_failures_total", {"sink": sink})
    return value or 0.0


@pytest.mark.asyncio
async def test_every_sink_receives_the_incident() -> None:
    """Each registered sink gets the incident exactly once."""
    first, second = RecordingSink(name="first"), RecordingSink(name="second")
    emitter = IncidentEmitter()
    emitter.register(first)
    emitter.register(second)
    incident = make_incident()

    await emitter.publish(incident)

    assert first.delivered == [incident]
    assert second.delivered == [incident]
    assert emitter.published == 1


@pytest.mark.asyncio
async def test_failing_sink_is_isolated() -> None:
    """A sink that raises affects neither the caller nor other sinks."""
    failing = FailingSink(name="broken")
    recording = RecordingSink()
    slow = SlowSink(delay=0.01)
    emitter = IncidentEmitter(sinks=[failing, recording, slow])
    before = _failures("broken")

    await emitter.publish(make_incident())

    assert failing.attempts == 1
    assert len(recording.delivered) == 1
    assert len(slow.delivered) == 1
    assert _failures("broken") == before + 1


@pytest.mark.asyncio
async def test_no_sinks() -> None:
    """Publishing with nothing registered is a no-op."""
    emitter = IncidentEmitter()
    await emitter.publish(make_incident())
    assert emitter.published == 1
