"""Tower container."""

from __future__ import annotations

from pydantic import model_validator

from votalizer.containers import Signature, Slot
from votalizer.types import StrictBaseModel

from .entry import TowerEntry


class VoteRecord(StrictBaseModel):
    """An accepted vote transaction, kept as evidence and for replay detection."""

    transaction_signature: Signature
    """Signature of the vote transaction."""

    slot: Slot
    """Slot the transaction voted for."""


class Tower(StrictBaseModel):
    """
    A validator's lockout stack.

    Towers are immutable values. The tracker replaces a validator's tower
    with a new value on every accepted vote and keeps the old one untouched
    otherwise, so a rejected or violating vote can never leave a partially
    applied update behind.
    """

    entries: tuple[TowerEntry, ...] = ()
    """Stacked votes, bottom first, strictly increasing by slot."""

    root_slot: Slot | None = None
    """
    Highest slot rotated out of the bottom of a full tower.

    The validator treats it as final; no vote may ever land at or below it.
    """

    vote_history: tuple[VoteRecord, ...] = ()
    """Recently accepted vote transactions, oldest first."""

    @model_validator(mode="after")
    def _check_ordering(self) -> Tower:
        """Enforce the strictly increasing slot order of the stack."""
        for lower, upper in zip(self.entries, self.entries[1:], strict=False):
            if upper.slot <= lower.slot:
                raise ValueError(f"tower slots not strictly increasing: {lower.slot}, {upper.slot}")
        if self.root_slot is not None and self.entries and self.entries[0].slot <= self.root_slot:
            raise ValueError(f"bottom slot {self.entries[0].slot} not above root {self.root_slot}")
        return self

    @property
    def depth(self) -> int:
        """Number of stacked votes."""
        return len(self.entries)

    @property
    def top(self) -> TowerEntry | None:
        """Most recent (highest slot) vote, if any."""
        return self.entries[-1] if self.entries else None

    @property
    def slots(self) -> tuple[Slot, ...]:
        """Stacked slots, bottom first."""
        return tuple(entry.slot for entry in self.entries)

    @property
    def last_voted_slot(self) -> Slot | None:
        """Highest slot this validator is known to have voted on."""
        if self.entries:
            return self.entries[-1].slot
        return self.root_slot

    def find(self, slot: Slot) -> TowerEntry | None:
        """Return the stacked entry for `slot`, if there is one."""
        for entry in self.entries:
            if entry.slot == slot:
                return entry
        return None

    def has_recorded(self, signature: Signature, slot: Slot) -> bool:
        """Whether this exact vote transaction and slot were already applied."""
        return any(
            record.slot == slot and record.transaction_signature == signature
            for record in self.vote_history
        )
