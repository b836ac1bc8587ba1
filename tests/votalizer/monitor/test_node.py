"""End-to-end tests of the monitor against a local pubsub server."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from tests.votalizer.helpers import make_pubkey, slot_frame, vote_frame
from votalizer.containers import Slot
from votalizer.feeder import SubscriptionUnavailableError
from votalizer.monitor import Monitor, MonitorConfig


def _app(frames: list[str], refuse: bool = False) -> web.Application:
    async def handler(request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        if refuse:
            body = await ws.receive_json()
            error = {"code": -32601, "message": "Method not found"}
            await ws.send_json({"jsonrpc": "2.0", "error": error, "id": body["id"]})
        else:
            for _ in range(2):
                body = await ws.receive_json()
                await ws.send_json({"jsonrpc": "2.0", "result": body["id"], "id": body["id"]})
        for frame in frames:
            await ws.send_str(frame)
        async for _ in ws:
            pass
        return ws

    app = web.Application()
    app.router.add_get("/", handler)
    return app


def _config(server: TestServer, incident_dir: Path) -> MonitorConfig:
    return MonitorConfig(
        websocket_url=str(server.make_url("/")),
        incident_dir=incident_dir,
        workers=2,
        backoff_initial=0.01,
        backoff_max=0.05,
    )


async def _wait_for(condition: Callable[[], bool], timeout: float = 5.0) -> None:
    async with asyncio.timeout(timeout):
        while not condition():
            await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_violation_written_to_incident_dir(tmp_path: Path) -> None:
    """A live lockout violation ends up as an incident record on disk."""
    frames = [
        slot_frame(10, 8),
        vote_frame(10, history=[5, 6, 7, 8], validator=3),
        vote_frame(9, fork=1, history=[5, 6, 7, 8], validator=3),
        vote_frame(4, validator=4),
    ]
    async with TestServer(_app(frames)) as server:
        monitor = Monitor.from_config(_config(server, tmp_path))
        task = asyncio.create_task(monitor.run(install_signal_handlers=False))

        await _wait_for(lambda: any(tmp_path.glob("incident-*.log")))
        await _wait_for(lambda: monitor.service.pipeline.votes_processed == 3)
        monitor.stop()
        await asyncio.wait_for(task, 5)

    (record,) = tmp_path.glob("incident-*.log")
    assert str(make_pubkey(3)) in record.name
    assert "kind: LockoutViolation" in record.read_text(encoding="utf-8")

    tracker = monitor.service.pipeline.tracker
    tower = tracker.snapshot(make_pubkey(4))
    assert tower is not None
    assert tower.slots == (Slot(4),)
    assert Slot(10) in monitor.service.pipeline.slot_index
    assert not monitor.is_running


@pytest.mark.asyncio
async def test_refused_subscription_stops_the_monitor(tmp_path: Path) -> None:
    """A node that cannot serve vote subscriptions aborts the run."""
    async with TestServer(_app([], refuse=True)) as server:
        monitor = Monitor.from_config(_config(server, tmp_path))
        with pytest.raises(SubscriptionUnavailableError):
            await asyncio.wait_for(monitor.run(install_signal_handlers=False), 5)

    assert list(tmp_path.iterdir()) == []
