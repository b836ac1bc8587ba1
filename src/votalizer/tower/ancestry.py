"""
Ancestry reconciliation.

Decides whether one block descends from another using only the ancestor
list reported alongside a vote. The relation is three-valued because the
local view is often incomplete, and an incomplete view must never be read as
proof of misbehavior.

Given an ancestor list A of some block B, and a candidate block C at slot s
with hash h (s below B's slot):

- CONFIRMED: s is in A, and A records h (or no hash at all) for s.
  B builds on C.
- CONFLICTING: s is in A with a hash other than h, or s is absent although A
  is a complete chain reaching down to s or below. B's chain provably skips C.
- UNKNOWN: anything else. A is empty, starts above s, or is only a sparse
  list (e.g. the slots one vote transaction happened to carry), so the
  absence of s proves nothing.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum, auto

from votalizer.containers import AncestorSlot, Hash, Slot


class Relation(Enum):
    """How a candidate block relates to a chain described by an ancestor list."""

    CONFIRMED = auto()
    CONFLICTING = auto()
    UNKNOWN = auto()


@dataclass(frozen=True, slots=True)
class Ancestry:
    """An indexed ancestor list."""

    hashes: dict[Slot, Hash | None]
    """Ancestor slot to reported hash (`None` when unreported)."""

    lowest: Slot | None
    """Lowest ancestor slot, `None` for an empty list."""

    complete: bool = True
    """Whether every ancestor between `lowest` and the block is listed."""

    @classmethod
    def of(cls, ancestors: Iterable[AncestorSlot], *, complete: bool = True) -> Ancestry:
        """Index an ancestor list."""
        hashes = {ancestor.slot: ancestor.hash for ancestor in ancestors}
        return cls(hashes=hashes, lowest=min(hashes) if hashes else None, complete=complete)

    def relation_to(self, slot: Slot, block_hash: Hash | None) -> Relation:
        """
        Relate the block at (`slot`, `block_hash`) to the chain these ancestors describe.

        A `block_hash` of `None` matches whatever block the chain records at `slot`.
        """
        if slot in self.hashes:
            recorded = self.hashes[slot]
            if recorded is None or block_hash is None or recorded == block_hash:
                return Relation.CONFIRMED
            return Relation.CONFLICTING

        if self.complete and self.lowest is not None and self.lowest <= slot:
            return Relation.CONFLICTING

        return Relation.UNKNOWN
