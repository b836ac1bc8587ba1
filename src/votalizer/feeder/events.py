"""
Feed items.

The feeder produces two kinds of items, in receive order:

- `RawNotification`: one undecoded frame from the subscription.
- `ConnectionGap`: a marker that the connection was lost and re-established.
  Votes emitted while disconnected may never be observed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class RawNotification:
    """One undecoded subscription frame."""

    payload: str | bytes
    """The frame exactly as received."""

    received_at: datetime
    """Wall-clock receipt time."""

    connection_id: int
    """Connection the frame arrived on. Increases by one on every reconnect."""


@dataclass(frozen=True, slots=True)
class ConnectionGap:
    """The connection was lost; items before and after it may not be contiguous."""

    previous_connection_id: int
    """Connection that was lost."""

    connection_id: int
    """Connection that replaced it."""

    disconnected_at: datetime
    """When the loss was noticed."""

    reason: str
    """Why the connection was lost."""


type FeedItem = RawNotification | ConnectionGap
"""Anything the feeder delivers."""
