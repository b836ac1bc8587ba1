"""Test helpers for votalizer unit tests."""

from __future__ import annotations

from .builders import (
    OBSERVED_AT,
    make_entry,
    make_hash,
    make_history,
    make_incident,
    make_pubkey,
    make_signature,
    make_tower,
    make_vote,
    slot_frame,
    vote_frame,
    vote_result,
)
from .mocks import FailingSink, FakeClock, RecordingSink, SlowSink

__all__ = [
    # Builders
    "make_entry",
    "make_hash",
    "make_history",
    "make_incident",
    "make_pubkey",
    "make_signature",
    "make_tower",
    "make_vote",
    "slot_frame",
    "vote_frame",
    "vote_result",
    # Mocks
    "FailingSink",
    "FakeClock",
    "RecordingSink",
    "SlowSink",
    # Constants
    "OBSERVED_AT",
]
