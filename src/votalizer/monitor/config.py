"""
Monitor configuration.

Values are resolved from four sources, later ones overriding earlier ones:

1. Built-in defaults.
2. An optional YAML file.
3. The environment (webhook credentials only).
4. Command line flags.

The YAML file uses the same keys as `MonitorFileConfig`, in snake_case or
camelCase::

    url: mainnet-beta
    incident_dir: /var/lib/votalizer/incidents
    workers: 8
    slack_webhook: https://hooks.slack.com/services/...
    api_port: 9090
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

import yaml
from pydantic import Field, ValidationError

from votalizer.api import ApiServerConfig
from votalizer.emitter import Channel, DiscordChannel, SlackChannel
from votalizer.emitter.notifier import DEFAULT_DISCORD_USERNAME
from votalizer.feeder import DEFAULT_RPC, resolve_rpc_url, websocket_url
from votalizer.feeder.backoff import INITIAL_DELAY, MAX_DELAY
from votalizer.feeder.subscription import DEFAULT_IDLE_TIMEOUT
from votalizer.types import StrictBaseModel

DEFAULT_CHANNEL_CAPACITY: Final = 10_000
"""Inbound notifications buffered before the oldest are dropped."""

DEFAULT_WORKERS: Final = 4
"""Tower worker tasks. Each validator is always handled by the same worker."""

DEFAULT_STATUS_INTERVAL: Final = 30.0
"""Seconds between status report log lines."""

ENV_VARIABLES: Final = {
    "SLACK_WEBHOOK": "slack_webhook",
    "DISCORD_WEBHOOK": "discord_webhook",
    "DISCORD_USERNAME": "discord_username",
}
"""Environment variables read, and the setting each one fills."""


class ConfigError(Exception):
    """The configuration cannot be loaded or is invalid."""


class MonitorFileConfig(StrictBaseModel):
    """Raw settings as they appear in a YAML file or on the command line."""

    url: str | None = None
    """JSON-RPC URL or cluster moniker."""

    incident_dir: str | None = None
    """Directory for incident records."""

    channel_capacity: int | None = Field(default=None, ge=1)
    """Inbound buffer size."""

    workers: int | None = Field(default=None, ge=1)
    """Number of tower workers."""

    status_interval: float | None = Field(default=None, gt=0)
    """Seconds between status reports."""

    idle_timeout: float | None = Field(default=None, gt=0)
    """Seconds of silence before reconnecting."""

    backoff_initial: float | None = Field(default=None, gt=0)
    """First reconnect delay."""

    backoff_max: float | None = Field(default=None, gt=0)
    """Longest reconnect delay."""

    evict_after: float | None = Field(default=None, gt=0)
    """Forget validators silent for this many seconds. Unset keeps them forever."""

    slack_webhook: str | None = None
    """Slack webhook URL."""

    discord_webhook: str | None = None
    """Discord webhook URL."""

    discord_username: str | None = None
    """Discord display name."""

    api_host: str | None = None
    """Diagnostics API bind address."""

    api_port: int | None = Field(default=None, ge=1, le=65535)
    """Diagnostics API port. Setting it enables the API."""

    @classmethod
    def from_yaml(cls, content: str) -> MonitorFileConfig:
        """
        Load settings from a YAML string.

        Raises:
            ConfigError: If the content is not a YAML mapping of known settings.
        """
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"config must be a mapping, got {type(data).__name__}")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"invalid config: {e}") from e

    @classmethod
    def from_yaml_file(cls, path: Path | str) -> MonitorFileConfig:
        """
        Load settings from a YAML file.

        Raises:
            ConfigError: If the file cannot be read or is invalid.
        """
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"cannot read {path}: {e}") from e
        return cls.from_yaml(content)


@dataclass(frozen=True, slots=True)
class MonitorConfig:
    """Fully resolved monitor configuration."""

    rpc_url: str = "http://localhost:8899"
    """JSON-RPC URL of the node."""

    websocket_url: str = "ws://localhost:8900"
    """Pubsub URL derived from `rpc_url`."""

    incident_dir: Path = field(default_factory=Path.cwd)
    """Directory for incident records."""

    channel_capacity: int = DEFAULT_CHANNEL_CAPACITY
    """Inbound buffer size."""

    workers: int = DEFAULT_WORKERS
    """Number of tower workers."""

    status_interval: float = DEFAULT_STATUS_INTERVAL
    """Seconds between status reports."""

    idle_timeout: float = DEFAULT_IDLE_TIMEOUT
    """Seconds of silence before reconnecting."""

    backoff_initial: float = INITIAL_DELAY
    """First reconnect delay."""

    backoff_max: float = MAX_DELAY
    """Longest reconnect delay."""

    evict_after: float | None = None
    """Idle seconds after which a validator's tower is forgotten."""

    channels: tuple[Channel, ...] = ()
    """Notification channels."""

    api: ApiServerConfig = field(default_factory=ApiServerConfig)
    """Diagnostics API settings."""


def load_config(
    *,
    config_path: Path | str | None = None,
    environ: Mapping[str, str] = os.environ,
    overrides: Mapping[str, Any] | None = None,
) -> MonitorConfig:
    """
    Resolve the monitor configuration.

    Args:
        config_path: Optional YAML file.
        environ: Environment to read webhook settings from.
        overrides: Settings from the command line. `None` values are ignored.

    Returns:
        The resolved configuration.

    Raises:
        ConfigError: If any source is invalid.
    """
    merged: dict[str, Any] = {}
    if config_path is not None:
        merged.update(MonitorFileConfig.from_yaml_file(config_path).model_dump(exclude_none=True))
    for variable, setting in ENV_VARIABLES.items():
        if value := environ.get(variable):
            merged[setting] = value
    merged.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        settings = MonitorFileConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(f"invalid setting: {e}") from e

    try:
        rpc_url = resolve_rpc_url(settings.url or DEFAULT_RPC)
    except ValueError as e:
        raise ConfigError(str(e)) from e

    backoff_initial = settings.backoff_initial or INITIAL_DELAY
    backoff_max = settings.backoff_max or max(MAX_DELAY, backoff_initial)
    if backoff_max < backoff_initial:
        raise ConfigError(f"backoff_max {backoff_max} is below backoff_initial {backoff_initial}")

    channels: list[Channel] = []
    if settings.slack_webhook:
        channels.append(SlackChannel(webhook=settings.slack_webhook))
    if settings.discord_webhook:
        channels.append(
            DiscordChannel(
                webhook=settings.discord_webhook,
                username=settings.discord_username or DEFAULT_DISCORD_USERNAME,
            )
        )

    api_defaults = ApiServerConfig()
    api = ApiServerConfig(
        host=settings.api_host or api_defaults.host,
        port=settings.api_port or api_defaults.port,
        enabled=settings.api_port is not None,
    )

    return MonitorConfig(
        rpc_url=rpc_url,
        websocket_url=websocket_url(rpc_url),
        incident_dir=Path(settings.incident_dir) if settings.incident_dir else Path.cwd(),
        channel_capacity=settings.channel_capacity or DEFAULT_CHANNEL_CAPACITY,
        workers=settings.workers or DEFAULT_WORKERS,
        status_interval=settings.status_interval or DEFAULT_STATUS_INTERVAL,
        idle_timeout=settings.idle_timeout or DEFAULT_IDLE_TIMEOUT,
        backoff_initial=backoff_initial,
        backoff_max=backoff_max,
        evict_after=settings.evict_after,
        channels=tuple(channels),
        api=api,
    )
