"""Incident record."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from votalizer.containers import Pubkey, Signature, Slot, Vote
from votalizer.tower import Tower, TowerEntry
from votalizer.types import StrictBaseModel


class IncidentKind(StrEnum):
    """Classification of a detected lockout violation."""

    LOCKOUT_VIOLATION = "LockoutViolation"
    """A live (non-expired) entry was abandoned for a conflicting fork."""

    RETROACTIVE_VOTE = "RetroactiveVote"
    """The vote lands at or below a slot the tower already rooted."""


class Incident(StrictBaseModel):
    """
    Immutable record of a detected violation.

    Carries the minimal evidence needed to verify the accusation without
    this process: the violating vote and the full tower as it stood just
    before that vote arrived.
    """

    validator_id: Pubkey
    """The misbehaving validator."""

    kind: IncidentKind
    """Violation classification."""

    violating_vote: Vote
    """The vote that broke the lockout."""

    conflicting_entries: tuple[TowerEntry, ...]
    """Entries whose lockout was broken, bottom first."""

    tower_snapshot: Tower
    """The validator's tower immediately before the violating vote."""

    detected_at: datetime
    """Wall-clock time of detection."""

    transaction_signature: Signature
    """Signature of the violating vote transaction."""

    explanation: str
    """Human-readable incident report."""

    @property
    def slots(self) -> tuple[Slot, ...]:
        """Every slot involved: the conflicting entries then the violating vote."""
        return tuple(entry.slot for entry in self.conflicting_entries) + (
            self.violating_vote.slot,
        )

    @property
    def summary(self) -> str:
        """One-line summary suitable for chat notifications."""
        locked = ", ".join(str(slot) for slot in self.slots[:-1])
        return (
            f"{self.kind}: validator {self.validator_id} voted slot "
            f"{self.violating_vote.slot} while locked out on slot(s) {locked} "
            f"[{self.transaction_signature}]"
        )
