"""
RPC endpoint resolution.

The monitor is pointed at a cluster either by URL or by moniker. Vote and
slot subscriptions are served over the websocket twin of the JSON-RPC URL:
the scheme becomes `ws`/`wss`, and an explicit port moves up by one (the
pubsub port sits next to the RPC port).
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Final
from urllib.parse import urlsplit, urlunsplit

MONIKERS: Final = MappingProxyType(
    {
        "localhost": "http://localhost:8899",
        "l": "http://localhost:8899",
        "devnet": "https://api.devnet.solana.com",
        "d": "https://api.devnet.solana.com",
        "testnet": "https://api.testnet.solana.com",
        "t": "https://api.testnet.solana.com",
        "mainnet-beta": "https://api.mainnet-beta.solana.com",
        "m": "https://api.mainnet-beta.solana.com",
    }
)
"""Cluster monikers and the JSON-RPC URL each stands for."""

DEFAULT_RPC: Final = "localhost"
"""Endpoint used when none is configured."""

_WS_SCHEMES: Final = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}


def resolve_rpc_url(url_or_moniker: str) -> str:
    """
    Turn a moniker into its URL; validate and return anything else.

    Raises:
        ValueError: If the value is neither a moniker nor an http(s) or ws(s) URL.
    """
    if url_or_moniker in MONIKERS:
        return MONIKERS[url_or_moniker]

    parts = urlsplit(url_or_moniker)
    if parts.scheme not in _WS_SCHEMES or not parts.hostname:
        raise ValueError(f"not a URL or cluster moniker: {url_or_moniker!r}")
    return url_or_moniker


def websocket_url(rpc_url: str) -> str:
    """
    Derive the pubsub websocket URL of a JSON-RPC URL.

    Examples:
        http://localhost:8899 -> ws://localhost:8900
        https://api.devnet.solana.com -> wss://api.devnet.solana.com
    """
    parts = urlsplit(resolve_rpc_url(rpc_url))
    scheme = _WS_SCHEMES[parts.scheme]

    # Already a websocket URL: taken as is.
    if parts.scheme == scheme:
        return urlunsplit(parts)

    netloc = parts.netloc
    if parts.port is not None:
        host = parts.hostname or ""
        if ":" in host:
            host = f"[{host}]"
        userinfo = netloc.rpartition("@")[0]
        netloc = f"{userinfo}@{host}:{parts.port + 1}" if userinfo else f"{host}:{parts.port + 1}"

    return urlunsplit((scheme, netloc, parts.path, parts.query, parts.fragment))
