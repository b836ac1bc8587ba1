"""
Incident emission.

Fans each detected incident out to the durable log writer and the
configured webhook channels.
"""

from .emitter import IncidentEmitter, IncidentSink
from .log_sink import IncidentLogWriter, incident_filename, render_record
from .notifier import (
    DISCORD_MAX_CONTENT,
    STARTUP_MESSAGE,
    Channel,
    DiscordChannel,
    SlackChannel,
    WebhookNotifier,
    channels_from_env,
    render_message,
)

__all__ = [
    "DISCORD_MAX_CONTENT",
    "STARTUP_MESSAGE",
    "Channel",
    "DiscordChannel",
    "IncidentEmitter",
    "IncidentLogWriter",
    "IncidentSink",
    "SlackChannel",
    "WebhookNotifier",
    "channels_from_env",
    "incident_filename",
    "render_message",
    "render_record",
]
