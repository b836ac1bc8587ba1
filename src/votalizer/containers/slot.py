"""Slot container."""

from __future__ import annotations

from functools import total_ordering

from pydantic import model_validator

from votalizer.types import StrictBaseModel, Uint64


@total_ordering
class Slot(Uint64):
    """Represents a slot number as a 64-bit unsigned integer."""

    def lockout_expiration(self, confirmation_count: int) -> Slot:
        """
        First slot at which a vote for this slot is no longer locked out.

        A vote with `confirmation_count` c locks the validator onto the voted
        fork for exactly 2**c slots:

            expiration = slot + 2**c

        A vote for any slot `s >= expiration` may abandon this one freely.
        Any slot `s < expiration` on a conflicting fork breaks the lockout.

        Args:
            confirmation_count: Count reported by the voting validator.

        Returns:
            The expiration slot.

        Raises:
            ValueError: If `confirmation_count` is negative.
            OverflowError: If the expiration does not fit in a slot.
        """
        if confirmation_count < 0:
            raise ValueError(f"confirmation_count must be >= 0, got {confirmation_count}")
        return Slot(int(self) + 2**confirmation_count)

    def is_locked_out_at(self, confirmation_count: int, slot: Slot) -> bool:
        """Whether a vote at this slot still locks out a vote at `slot`."""
        return slot < self.lockout_expiration(confirmation_count)


class SlotUpdate(StrictBaseModel):
    """A slot notification: a new block was observed at `slot` on top of `parent`."""

    slot: Slot
    """The newly observed slot."""

    parent: Slot
    """Slot of the parent block."""

    root: Slot | None = None
    """The node's current root slot, when reported."""

    @model_validator(mode="after")
    def _check_parent(self) -> SlotUpdate:
        """A block always builds on a lower slot."""
        if self.parent >= self.slot:
            raise ValueError(f"parent {self.parent} is not below slot {self.slot}")
        return self
