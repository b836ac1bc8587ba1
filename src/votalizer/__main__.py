"""
Lockout monitor CLI entry point.

Watch a node's vote feed and report every validator that breaks its own
tower lockout.

Usage::

    python -m votalizer
    python -m votalizer --url mainnet-beta
    python -m votalizer --url http://127.0.0.1:8899 --incident-dir ./incidents
    python -m votalizer --config votalizer.yaml --api-port 9090

Options:
    --url           JSON-RPC URL or moniker (localhost, devnet, testnet, mainnet-beta)
    --config        YAML configuration file
    --incident-dir  Directory for incident records (default: current directory)
    --workers       Number of tower workers
    --api-port      Serve health, metrics and towers on this port

Webhooks are configured through the environment:
    SLACK_WEBHOOK, DISCORD_WEBHOOK, DISCORD_USERNAME (default: votalizer)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from votalizer.feeder import DEFAULT_RPC, SubscriptionUnavailableError
from votalizer.monitor import ConfigError, Monitor, MonitorConfig, load_config

logger = logging.getLogger(__name__)


class ColoredFormatter(logging.Formatter):
    """Logging formatter with ANSI colors for better readability."""

    # ANSI color codes
    GREY = "\x1b[38;5;244m"
    BLUE = "\x1b[38;5;39m"
    GREEN = "\x1b[38;5;40m"
    YELLOW = "\x1b[38;5;220m"
    RED = "\x1b[38;5;196m"
    BOLD_RED = "\x1b[38;5;196;1m"
    CYAN = "\x1b[38;5;51m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)

        timestamp = self.formatTime(record, self.datefmt)
        colored_time = f"{self.CYAN}{timestamp}{self.RESET}"
        levelname = f"{color}{record.levelname:8}{self.RESET}"
        name = f"{self.BLUE}{record.name}{self.RESET}"

        # Incident reports span several lines; keep them intact.
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        return f"{colored_time} {levelname} {name}: {message}"


def setup_logging(verbose: bool = False, no_color: bool = False) -> None:
    """Configure logging for the monitor with optional colors."""
    level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    handler.setLevel(level)

    if no_color:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = ColoredFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)


def build_parser() -> argparse.ArgumentParser:
    """Command line parser."""
    parser = argparse.ArgumentParser(
        prog="votalizer",
        description="Tower lockout violation monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "-u",
        "--url",
        default=None,
        help=f"JSON RPC URL or moniker for the cluster (default: {DEFAULT_RPC})",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a YAML configuration file",
    )
    parser.add_argument(
        "--incident-dir",
        default=None,
        help="Directory for incident records (default: current directory)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of tower worker tasks (default: 4)",
    )
    parser.add_argument(
        "--channel-capacity",
        type=int,
        default=None,
        help="Inbound notifications buffered before the oldest are dropped (default: 10000)",
    )
    parser.add_argument(
        "--idle-timeout",
        type=float,
        default=None,
        help="Seconds without a frame before reconnecting (default: 30)",
    )
    parser.add_argument(
        "--status-interval",
        type=float,
        default=None,
        help="Seconds between status reports (default: 30)",
    )
    parser.add_argument(
        "--evict-after",
        type=float,
        default=None,
        help="Forget validators that have not voted for this many seconds",
    )
    parser.add_argument(
        "--api-host",
        default=None,
        help="Diagnostics API bind address (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--api-port",
        type=int,
        default=None,
        help="Serve the diagnostics API on this port (disabled by default)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored logging output",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> MonitorConfig:
    """
    Resolve the monitor configuration from parsed arguments.

    Raises:
        ConfigError: If any setting is invalid.
    """
    return load_config(
        config_path=args.config,
        overrides={
            "url": args.url,
            "incident_dir": args.incident_dir,
            "workers": args.workers,
            "channel_capacity": args.channel_capacity,
            "idle_timeout": args.idle_timeout,
            "status_interval": args.status_interval,
            "evict_after": args.evict_after,
            "api_host": args.api_host,
            "api_port": args.api_port,
        },
    )


async def run_monitor(config: MonitorConfig) -> None:
    """Build the monitor and run it until shutdown."""
    monitor = Monitor.from_config(config)
    await monitor.run()


def main(argv: list[str] | None = None) -> int:
    """
    CLI entry point.

    Returns:
        Process exit code: 0 on clean shutdown, 1 when the node cannot serve
        vote subscriptions, 2 on invalid configuration.
    """
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.no_color)

    try:
        config = resolve_config(args)
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    try:
        asyncio.run(run_monitor(config))
    except SubscriptionUnavailableError as e:
        logger.error("%s", e)
        logger.error(
            "The RPC endpoint must allow full API access and vote subscriptions "
            "(--full-rpc-api --rpc-pubsub-enable-vote-subscription)"
        )
        return 1
    except KeyboardInterrupt:
        # asyncio.run() handles task cancellation, but we log for clarity.
        logger.info("Shutting down...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
