"""Tests for the command line entry point."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

import votalizer.__main__ as cli
from votalizer.feeder import SubscriptionUnavailableError
from votalizer.monitor import MonitorConfig


@pytest.fixture(autouse=True)
def _restore_logging(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Undo handlers installed by `setup_logging` and hide webhook settings."""
    for variable in ("SLACK_WEBHOOK", "DISCORD_WEBHOOK", "DISCORD_USERNAME"):
        monkeypatch.delenv(variable, raising=False)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestParser:
    """Command line parsing."""

    def test_defaults_are_unset(self) -> None:
        """Unset flags leave the configuration to the other sources."""
        args = cli.build_parser().parse_args([])
        assert args.url is None
        assert args.config is None
        assert args.workers is None
        assert args.api_port is None
        assert not args.verbose
        assert not args.no_color

    def test_flags(self) -> None:
        """Flags are parsed into typed values."""
        args = cli.build_parser().parse_args(
            ["-u", "devnet", "--workers", "2", "--idle-timeout", "1.5", "--config", "x.yaml"]
        )
        assert args.url == "devnet"
        assert args.workers == 2
        assert args.idle_timeout == 1.5
        assert args.config == Path("x.yaml")


class TestResolveConfig:
    """Flags layered over the other configuration sources."""

    def test_flags_override_file(self, tmp_path: Path) -> None:
        """A flag wins over the same key in the file."""
        path = tmp_path / "votalizer.yaml"
        path.write_text("url: devnet\nworkers: 8\n", encoding="utf-8")
        args = cli.build_parser().parse_args(
            ["--config", str(path), "--workers", "3", "--incident-dir", str(tmp_path)]
        )

        config = cli.resolve_config(args)

        assert config.rpc_url == "https://api.devnet.solana.com"
        assert config.workers == 3
        assert config.incident_dir == tmp_path

    def test_api_port_enables_api(self) -> None:
        """Giving a port turns the diagnostics API on."""
        args = cli.build_parser().parse_args(["--api-port", "9191"])
        config = cli.resolve_config(args)
        assert config.api.enabled
        assert config.api.port == 9191


class TestMain:
    """Exit codes."""

    def test_invalid_url(self) -> None:
        """A bad URL is a configuration error."""
        assert cli.main(["--url", "ftp://example.com", "--no-color"]) == 2

    def test_invalid_worker_count(self) -> None:
        """Out of range values are configuration errors."""
        assert cli.main(["--workers", "0", "--no-color"]) == 2

    def test_subscription_unavailable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A node that cannot serve vote subscriptions stops the monitor."""

        async def refuse(config: MonitorConfig) -> None:
            raise SubscriptionUnavailableError("voteSubscribe refused")

        monkeypatch.setattr(cli, "run_monitor", refuse)
        assert cli.main(["--no-color"]) == 1

    def test_clean_shutdown(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A monitor that returns exits cleanly."""
        seen: list[MonitorConfig] = []

        async def record(config: MonitorConfig) -> None:
            seen.append(config)

        monkeypatch.setattr(cli, "run_monitor", record)
        assert cli.main(["-u", "testnet"]) == 0
        assert seen[0].websocket_url == "wss://api.testnet.solana.com"


class TestLogging:
    """Log output formatting."""

    def test_verbose_sets_debug(self) -> None:
        """Verbose mode lowers the root level."""
        cli.setup_logging(verbose=True, no_color=True)
        assert logging.getLogger().level == logging.DEBUG

    def test_colored_formatter_keeps_message(self) -> None:
        """Colors wrap the fields without altering the message."""
        record = logging.LogRecord(
            "votalizer.detector", logging.ERROR, __file__, 1, "line one\nline two", (), None
        )
        output = cli.ColoredFormatter().format(record)

        assert "line one\nline two" in output
        assert cli.ColoredFormatter.RED in output
        assert "votalizer.detector" in output
