"""
Slot ancestry index.

Slot notifications announce every block the node sees together with its
parent. Chained together they describe the node's block tree, which fills in
the ancestry of votes that arrive without a usable slot history.

Only parent links are stored. The ancestors of a slot are recovered by
walking the links downward until a slot the index never saw (or already
forgot). Every slot on such a walk is listed, so the result is a complete
chain from its lowest slot up.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field
from typing import Final

from votalizer.containers import Slot, SlotUpdate

logger = logging.getLogger(__name__)

MAX_TRACKED_ANCESTORS: Final = 10 * 1024
"""Longest ancestor chain returned for one slot."""

MAX_TRACKED_SLOTS: Final = 10 * 1024
"""Slots remembered. The lowest slot is forgotten first."""


@dataclass(slots=True)
class SlotAncestryIndex:
    """Bounded map of observed slots to their parent slots."""

    max_slots: int = MAX_TRACKED_SLOTS
    """Capacity in slots."""

    max_ancestors: int = MAX_TRACKED_ANCESTORS
    """Longest chain returned by `ancestors`."""

    _parents: dict[Slot, Slot] = field(default_factory=dict)
    _order: list[Slot] = field(default_factory=list)
    _root: Slot | None = None

    def __len__(self) -> int:
        return len(self._parents)

    def __contains__(self, slot: object) -> bool:
        return slot in self._parents

    @property
    def root(self) -> Slot | None:
        """The node's most recently reported root slot."""
        return self._root

    def observe(self, update: SlotUpdate) -> bool:
        """
        Record a slot notification.

        A slot seen before is ignored: its parent cannot change.

        Returns:
            True if the slot was new.
        """
        if update.root is not None:
            self._root = update.root

        if update.slot in self._parents:
            logger.debug("Slot %s already tracked, ignoring notification", update.slot)
            return False

        self._parents[update.slot] = update.parent
        heapq.heappush(self._order, update.slot)
        while len(self._parents) > self.max_slots:
            del self._parents[heapq.heappop(self._order)]

        logger.debug("Slot %s (parent %s), %d slots tracked", update.slot, update.parent, len(self))
        return True

    def ancestors(self, slot: Slot, floor: Slot | None = None) -> tuple[Slot, ...] | None:
        """
        Ancestors of `slot`, ascending.

        Args:
            slot: The slot whose ancestry is wanted.
            floor: Stop after the first ancestor below this slot. Nothing
                lower is needed to judge entries at or above `floor`.

        Returns:
            The ancestor chain, or None if `slot` was never observed.
        """
        if slot not in self._parents:
            return None

        chain: list[Slot] = []
        current = slot
        while current in self._parents and len(chain) < self.max_ancestors:
            parent = self._parents[current]
            chain.append(parent)
            if floor is not None and parent < floor:
                break
            current = parent

        chain.reverse()
        return tuple(chain)
