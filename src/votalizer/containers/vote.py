"""Vote Containers."""

from __future__ import annotations

from datetime import datetime
from typing import Final

from pydantic import Field, model_validator

from votalizer.types import StrictBaseModel

from .identifiers import Hash, Pubkey, Signature
from .slot import Slot

INITIAL_CONFIRMATION_COUNT: Final[int] = 1
"""Count of a vote that was just pushed and confirms nothing yet."""

MAX_CONFIRMATION_COUNT: Final[int] = 32
"""
Upper bound on a reported confirmation count.

A tower holds at most 31 votes, so a vote can confirm at most 31 others and
carry a count of 32. Anything larger cannot come from an honest tower.
"""


class AncestorSlot(StrictBaseModel):
    """One slot of a vote's ancestor chain."""

    slot: Slot
    """The ancestor slot."""

    hash: Hash | None = None
    """
    Block hash at that slot, when the feed reports it.

    `None` means the slot is known to be an ancestor but its block identity
    was not reported. Such an ancestor matches any hash.
    """


class Vote(StrictBaseModel):
    """One observed vote event, normalized from a feed notification."""

    validator_id: Pubkey
    """Identity of the voting validator."""

    slot: Slot
    """The voted-for slot."""

    hash: Hash
    """Hash of the voted block (fork identity)."""

    confirmation_count: int | None = Field(default=None, ge=0, le=MAX_CONFIRMATION_COUNT)
    """
    Confirmation count assigned by the voting validator, when the feed reports it.

    A reported count is signed protocol data and is taken as ground truth.
    `None` means the tracker derives counts itself by stacking every voted
    slot and doubling the lockouts beneath it.
    """

    earlier_slots: tuple[Slot, ...] = ()
    """Other slots voted by the same transaction, strictly ascending, all below `slot`."""

    slot_history: tuple[AncestorSlot, ...] = ()
    """Ancestor slots this vote builds on, strictly ascending, all below `slot`."""

    history_complete: bool = True
    """
    Whether `slot_history` lists every ancestor block down to its lowest slot.

    False when the history is only the sparse list of slots one vote
    transaction carried. The absence of a slot from a sparse history proves
    nothing about forks.
    """

    observed_at: datetime
    """Wall-clock time of receipt (not protocol time)."""

    transaction_signature: Signature
    """Signature of the vote transaction carrying this vote."""

    timestamp: int | None = None
    """Unix timestamp published by the validator, if any."""

    @model_validator(mode="after")
    def _check_history(self) -> Vote:
        """Reject histories and voted slots that are unordered or reach the vote's own slot."""
        previous: Slot | None = None
        for ancestor in self.slot_history:
            if ancestor.slot >= self.slot:
                raise ValueError(
                    f"ancestor slot {ancestor.slot} is not below vote slot {self.slot}"
                )
            if previous is not None and ancestor.slot <= previous:
                raise ValueError(f"slot history is not strictly ascending at {ancestor.slot}")
            previous = ancestor.slot
        for lower, upper in zip(self.earlier_slots, self.voted_slots[1:], strict=True):
            if upper <= lower:
                raise ValueError(f"voted slots are not strictly ascending at {upper}")
        return self

    @property
    def lockout_expiration_slot(self) -> Slot:
        """Slot at which this vote's own lockout expires."""
        count = self.confirmation_count
        return self.slot.lockout_expiration(
            INITIAL_CONFIRMATION_COUNT if count is None else count
        )

    @property
    def voted_slots(self) -> tuple[Slot, ...]:
        """Every slot this vote transaction voted for, ascending, ending at `slot`."""
        return self.earlier_slots + (self.slot,)

    def ancestry(self) -> dict[Slot, Hash | None]:
        """Map each ancestor slot to its reported hash (or `None`)."""
        return {ancestor.slot: ancestor.hash for ancestor in self.slot_history}

    def with_history(self, history: tuple[AncestorSlot, ...], *, complete: bool) -> Vote:
        """Return a copy of this vote with a replacement slot history."""
        return Vote(
            validator_id=self.validator_id,
            slot=self.slot,
            hash=self.hash,
            confirmation_count=self.confirmation_count,
            earlier_slots=self.earlier_slots,
            slot_history=history,
            history_complete=complete,
            observed_at=self.observed_at,
            transaction_signature=self.transaction_signature,
            timestamp=self.timestamp,
        )
