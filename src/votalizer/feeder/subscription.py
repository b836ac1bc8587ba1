"""
Subscription feeder.

Owns the websocket connection to the node's pubsub endpoint and turns it
into an ordered stream of feed items.


CONTRACT
--------
- Frames are delivered in the order they were received on one connection.
- On disconnect or idle timeout the feeder reconnects with exponential
  backoff and subscribes again. The gap is announced with a `ConnectionGap`
  item but never repaired: votes cast while disconnected may be lost.
- If the node refuses the subscription before the feeder ever succeeded,
  the node cannot serve this monitor at all. That is fatal and raised as
  `SubscriptionUnavailableError`.


SUBSCRIBE HANDSHAKE
-------------------
For each subscription the feeder sends one JSON-RPC request::

    {"jsonrpc": "2.0", "id": 1, "method": "voteSubscribe"}

and waits for its response. A `result` is the subscription id. An `error`
(typically "Method not found" when the node was started without
`--rpc-pubsub-enable-vote-subscription`) is a refusal. Notifications that
arrive while other responses are still pending are delivered as usual.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Final

import aiohttp

from votalizer import metrics

from .backoff import Backoff
from .channel import BoundedChannel
from .events import ConnectionGap, FeedItem, RawNotification

logger = logging.getLogger(__name__)

SUBSCRIPTION_METHODS: Final = ("voteSubscribe", "slotSubscribe")
"""Subscriptions opened on every connection."""

DEFAULT_IDLE_TIMEOUT: Final = 30.0
"""Seconds without any frame after which the connection is considered dead."""


class SubscriptionError(Exception):
    """A subscription could not be established on the current connection."""


class SubscriptionUnavailableError(SubscriptionError):
    """
    The endpoint cannot serve the subscriptions at all.

    Raised only before the first successful subscription. Callers should
    abort startup.
    """


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class SubscriptionFeeder:
    """Produces feed items from a live pubsub connection into a channel."""

    url: str
    """Websocket URL of the pubsub endpoint."""

    channel: BoundedChannel[FeedItem]
    """Destination of every feed item. Closed when the feeder stops."""

    idle_timeout: float = DEFAULT_IDLE_TIMEOUT
    """Seconds of silence that force a reconnect."""

    backoff: Backoff = field(default_factory=Backoff)
    """Reconnect delay policy."""

    methods: tuple[str, ...] = SUBSCRIPTION_METHODS
    """Subscription methods to call on each connection."""

    session: aiohttp.ClientSession | None = None
    """HTTP session. Created for the lifetime of `run` when not supplied."""

    clock: Callable[[], datetime] = _utcnow
    """Source of receipt timestamps."""

    connection_id: int = field(default=0, init=False)
    """Id of the current (or last) connection. Zero before the first one."""

    subscriptions: dict[str, int] = field(default_factory=dict, init=False)
    """Method -> subscription id on the current connection."""

    _running: bool = field(default=False, init=False, repr=False)
    _subscribed_once: bool = field(default=False, init=False, repr=False)
    _ws: aiohttp.ClientWebSocketResponse | None = field(default=None, init=False, repr=False)
    _wakeup: asyncio.Event = field(default_factory=asyncio.Event, init=False, repr=False)

    async def run(self) -> None:
        """
        Feed the channel until `stop` is called.

        Raises:
            SubscriptionUnavailableError: If the endpoint refuses the
                subscriptions before any connection succeeded.
        """
        self._running = True
        self._wakeup.clear()
        session = self.session or aiohttp.ClientSession()
        lost: tuple[datetime, str] | None = None

        try:
            while self._running:
                try:
                    reason = await self._connection(session, lost)
                except SubscriptionUnavailableError:
                    raise
                except (aiohttp.ClientError, OSError, TimeoutError, SubscriptionError) as e:
                    reason = f"{type(e).__name__}: {e}"

                if not self._running:
                    break

                lost = (self.clock(), reason)
                delay = self.backoff.next_delay()
                metrics.reconnects.inc()
                logger.warning(
                    "Connection to %s lost (%s), retrying in %.1fs", self.url, reason, delay
                )
                await self._sleep(delay)
        finally:
            self._running = False
            self._ws = None
            if self.session is None:
                await session.close()
            self.channel.close()

    async def stop(self) -> None:
        """Request shutdown and close the current connection."""
        self._running = False
        self._wakeup.set()
        if self._ws is not None:
            await self._ws.close()

    async def _sleep(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._wakeup.wait(), delay)
        except TimeoutError:
            pass

    async def _connection(
        self, session: aiohttp.ClientSession, lost: tuple[datetime, str] | None
    ) -> str:
        """Run one connection to completion. Returns why it ended."""
        async with session.ws_connect(self.url) as ws:
            self._ws = ws
            previous = self.connection_id
            self.connection_id += 1
            logger.info("Connected to %s (connection %d)", self.url, self.connection_id)

            if lost is not None and previous > 0:
                disconnected_at, reason = lost
                self.channel.put_nowait(
                    ConnectionGap(
                        previous_connection_id=previous,
                        connection_id=self.connection_id,
                        disconnected_at=disconnected_at,
                        reason=reason,
                    )
                )

            try:
                await self._subscribe(ws)
                self.backoff.reset()
                return await self._receive(ws)
            finally:
                self._ws = None

    async def _subscribe(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        self.subscriptions = {}
        pending: dict[int, str] = {}
        for request_id, method in enumerate(self.methods, start=1):
            pending[request_id] = method
            await ws.send_json({"jsonrpc": "2.0", "id": request_id, "method": method})

        while pending:
            message = await ws.receive(timeout=self.idle_timeout)
            if message.type not in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                raise SubscriptionError(f"connection ended while subscribing ({message.type.name})")

            response = _response(message.data)
            request_id = None if response is None else response.get("id")
            if response is None or not isinstance(request_id, int) or request_id not in pending:
                self._deliver(message.data)
                continue

            method = pending.pop(request_id)
            if "error" in response:
                error = response["error"]
                detail = error.get("message", error) if isinstance(error, dict) else error
                if not self._subscribed_once:
                    raise SubscriptionUnavailableError(f"{method} refused by {self.url}: {detail}")
                raise SubscriptionError(f"{method} refused: {detail}")

            self.subscriptions[method] = response.get("result")
            logger.info("Subscribed to %s (id %s)", method, response.get("result"))

        self._subscribed_once = True

    async def _receive(self, ws: aiohttp.ClientWebSocketResponse) -> str:
        while self._running:
            try:
                message = await ws.receive(timeout=self.idle_timeout)
            except TimeoutError:
                return f"no frame for {self.idle_timeout}s"

            match message.type:
                case aiohttp.WSMsgType.TEXT | aiohttp.WSMsgType.BINARY:
                    self._deliver(message.data)
                case aiohttp.WSMsgType.ERROR:
                    return f"websocket error: {ws.exception()!r}"
                case _:
                    return f"closed ({message.type.name})"
        return "stopped"

    def _deliver(self, payload: str | bytes) -> None:
        self.channel.put_nowait(
            RawNotification(
                payload=payload,
                received_at=self.clock(),
                connection_id=self.connection_id,
            )
        )


def _response(payload: str | bytes) -> dict[str, Any] | None:
    """The frame as a JSON-RPC response object, or None if it is anything else."""
    try:
        frame = json.loads(payload)
    except ValueError:
        return None
    if isinstance(frame, dict) and "id" in frame and "method" not in frame:
        return frame
    return None
