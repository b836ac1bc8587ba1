"""Tower entry container."""

from __future__ import annotations

from pydantic import Field

from votalizer.containers import (
    INITIAL_CONFIRMATION_COUNT,
    MAX_CONFIRMATION_COUNT,
    AncestorSlot,
    Hash,
    Signature,
    Slot,
    Vote,
)
from votalizer.types import StrictBaseModel

from .constants import MAX_ENTRY_ANCESTORS


class TowerEntry(StrictBaseModel):
    """One lockout-protected vote held in a validator's tower."""

    slot: Slot
    """The voted slot."""

    hash: Hash | None
    """
    Hash of the voted block at push time.

    `None` for an earlier slot of a multi-slot transaction whose block hash
    was not reported. Such an entry matches any block at its slot.
    """

    confirmation_count: int = Field(ge=0, le=MAX_CONFIRMATION_COUNT)
    """Confirmation count reported by the vote, or derived by stacking when none was."""

    transaction_signature: Signature
    """Vote transaction that pushed this entry."""

    ancestors: tuple[AncestorSlot, ...] = ()
    """
    Most recent ancestors of the voted block, as reported with the vote.

    Used to decide whether a later vote for a lower slot sits on this
    entry's fork or abandons it.
    """

    ancestors_complete: bool = True
    """Whether `ancestors` is a complete chain (see `Vote.history_complete`)."""

    @classmethod
    def from_vote(cls, vote: Vote, slot: Slot | None = None) -> TowerEntry:
        """
        Build the entry a vote pushes for one of its voted slots.

        Args:
            vote: The accepted vote.
            slot: Which voted slot to build the entry for. Defaults to `vote.slot`.
        """
        slot = vote.slot if slot is None else slot
        block_hash = vote.hash if slot == vote.slot else vote.ancestry().get(slot)

        count = vote.confirmation_count if slot == vote.slot else None
        ancestors = tuple(a for a in vote.slot_history if a.slot < slot)
        return cls(
            slot=slot,
            hash=block_hash,
            confirmation_count=INITIAL_CONFIRMATION_COUNT if count is None else count,
            transaction_signature=vote.transaction_signature,
            ancestors=ancestors[-MAX_ENTRY_ANCESTORS:],
            ancestors_complete=vote.history_complete,
        )

    @property
    def lockout(self) -> int:
        """Number of slots this entry locks the validator onto its fork."""
        return 2**self.confirmation_count

    @property
    def lockout_expiration_slot(self) -> Slot:
        """
        First slot at which this entry may be abandoned.

        Derived on every read from `slot` and `confirmation_count`.
        """
        return self.slot.lockout_expiration(self.confirmation_count)

    def is_expired_at(self, slot: Slot) -> bool:
        """Whether a vote at `slot` may pop this entry regardless of fork."""
        # Plain ints: the expiration of a slot near the top of the range may not fit in a Slot.
        return int(slot) >= int(self.slot) + self.lockout
