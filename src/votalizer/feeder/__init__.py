"""
Subscription feeder.

Owns the live connection to the node and delivers an ordered stream of raw
notifications through a bounded channel. Reconnects with backoff and marks
every reconnect with a `ConnectionGap`.
"""

from .backoff import Backoff
from .channel import BoundedChannel, ChannelClosedError
from .endpoint import DEFAULT_RPC, MONIKERS, resolve_rpc_url, websocket_url
from .events import ConnectionGap, FeedItem, RawNotification
from .subscription import (
    SUBSCRIPTION_METHODS,
    SubscriptionError,
    SubscriptionFeeder,
    SubscriptionUnavailableError,
)

__all__ = [
    "DEFAULT_RPC",
    "MONIKERS",
    "SUBSCRIPTION_METHODS",
    "Backoff",
    "BoundedChannel",
    "ChannelClosedError",
    "ConnectionGap",
    "FeedItem",
    "RawNotification",
    "SubscriptionError",
    "SubscriptionFeeder",
    "SubscriptionUnavailableError",
    "resolve_rpc_url",
    "websocket_url",
]
