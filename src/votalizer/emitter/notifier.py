"""
Webhook notifications.

Each configured channel receives every message independently, rendered to
its own payload shape:

- Slack: `{"text": ...}`
- Discord: `{"username": ..., "content": ...}`

Channels come from the environment (`SLACK_WEBHOOK`, `DISCORD_WEBHOOK`,
`DISCORD_USERNAME`) or from the monitor configuration. A failed delivery is
logged and counted. It is not retried.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Final

import httpx

from votalizer import metrics
from votalizer.detector import Incident

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: Final = 10.0
"""HTTP request timeout in seconds."""

DEFAULT_DISCORD_USERNAME: Final = "votalizer"
"""Username Discord messages are posted under unless configured otherwise."""

DISCORD_MAX_CONTENT: Final = 2000
"""Discord rejects message content longer than this."""

STARTUP_MESSAGE: Final = "votalizer active"
"""Message announcing that the monitor started."""


@dataclass(frozen=True, slots=True)
class SlackChannel:
    """A Slack incoming webhook."""

    webhook: str
    """Webhook URL."""

    name: str = "slack"
    """Channel identifier."""

    def payload(self, message: str) -> dict[str, Any]:
        """Slack message body."""
        return {"text": message}


@dataclass(frozen=True, slots=True)
class DiscordChannel:
    """A Discord webhook."""

    webhook: str
    """Webhook URL."""

    username: str = DEFAULT_DISCORD_USERNAME
    """Name the message is posted under."""

    name: str = "discord"
    """Channel identifier."""

    def payload(self, message: str) -> dict[str, Any]:
        """Discord message body, truncated to the content limit."""
        if len(message) > DISCORD_MAX_CONTENT:
            message = message[: DISCORD_MAX_CONTENT - 3] + "..."
        return {"username": self.username, "content": message}


type Channel = SlackChannel | DiscordChannel
"""Any supported notification channel."""


def channels_from_env(environ: Mapping[str, str] = os.environ) -> list[Channel]:
    """Build the channels configured in the environment."""
    channels: list[Channel] = []
    if webhook := environ.get("SLACK_WEBHOOK"):
        channels.append(SlackChannel(webhook=webhook))
    if webhook := environ.get("DISCORD_WEBHOOK"):
        username = environ.get("DISCORD_USERNAME") or DEFAULT_DISCORD_USERNAME
        channels.append(DiscordChannel(webhook=webhook, username=username))
    return channels


def render_message(incident: Incident) -> str:
    """Chat rendering of an incident: summary line, then the report."""
    return f"{incident.summary}\n```\n{incident.explanation}```"


@dataclass(slots=True)
class WebhookNotifier:
    """
    Sends messages to chat webhooks.

    Also acts as an incident sink: each incident is rendered once and sent
    to every channel.
    """

    channels: list[Channel] = field(default_factory=list)
    """Configured channels. With none, every send is a no-op."""

    client: httpx.AsyncClient | None = None
    """HTTP client. Created on first use when not supplied."""

    name: str = "webhook"
    """Sink identifier."""

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] = os.environ,
        client: httpx.AsyncClient | None = None,
    ) -> WebhookNotifier:
        """Build a notifier for the channels configured in the environment."""
        return cls(channels=channels_from_env(environ), client=client)

    async def send(self, message: str) -> int:
        """
        Send a message to every channel.

        Returns:
            Number of channels that accepted the message.
        """
        if not self.channels:
            return 0
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)

        delivered = 0
        for channel in self.channels:
            try:
                response = await self.client.post(channel.webhook, json=channel.payload(message))
                response.raise_for_status()
            except httpx.HTTPError as exc:
                metrics.notifier_failures.labels(sink=channel.name).inc()
                logger.error("Failed to send %s message: %r", channel.name, exc)
                continue
            delivered += 1
        return delivered

    async def deliver(self, incident: Incident) -> None:
        """Notify every channel of an incident."""
        await self.send(render_message(incident))

    async def announce_startup(self) -> None:
        """Tell every channel the monitor is running."""
        await self.send(STARTUP_MESSAGE)

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self.client is not None:
            await self.client.aclose()
            self.client = None
