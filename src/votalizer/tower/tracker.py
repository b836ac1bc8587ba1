"""
Keyed tower store.

Each validator owns one `TowerCell`: a slot holding its current immutable
`Tower` and a lock that serializes updates for that validator only. Updates
for different validators never contend.

Reads never take a lock. A tower is an immutable value and replacing the
cell's reference is atomic, so a reader sees either the tower before an
update or the tower after it, never a mix.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from threading import Lock

from votalizer.containers import Pubkey, Vote

from .outcome import UpdateOutcome
from .tower import Tower
from .update import process_vote


@dataclass(slots=True)
class TowerCell:
    """Mutable holder of one validator's tower."""

    tower: Tower
    """Current tower value."""

    last_update: float
    """Monotonic time of the last applied vote (accepted or not)."""

    lock: Lock = field(default_factory=Lock)
    """Serializes updates to this cell."""


@dataclass
class TowerTracker:
    """
    Authoritative per-validator lockout state.

    Towers are created lazily on a validator's first vote and live until
    evicted.
    """

    clock: Callable[[], float] = time.monotonic
    """Time source for idle eviction."""

    _cells: dict[Pubkey, TowerCell] = field(default_factory=dict)
    """Validator -> cell mapping."""

    _registry_lock: Lock = field(default_factory=Lock)
    """Guards creation and removal of cells, never held during an update."""

    def apply(self, validator_id: Pubkey, vote: Vote) -> UpdateOutcome:
        """
        Apply one vote to the validator's tower.

        The tower is replaced only when the vote is accepted. A violating or
        rejected vote leaves it exactly as it was.

        Args:
            validator_id: Owner of the tower.
            vote: Vote cast by that validator.

        Returns:
            The update outcome.

        Raises:
            ValueError: If the vote was cast by a different validator.
        """
        if vote.validator_id != validator_id:
            raise ValueError(f"vote from {vote.validator_id} applied to tower of {validator_id}")

        cell = self._cell(validator_id)
        with cell.lock:
            update = process_vote(cell.tower, vote)
            cell.tower = update.tower
            cell.last_update = self.clock()
        return update.outcome

    def _cell(self, validator_id: Pubkey) -> TowerCell:
        cell = self._cells.get(validator_id)
        if cell is not None:
            return cell
        with self._registry_lock:
            # Another thread may have created it while we waited.
            cell = self._cells.get(validator_id)
            if cell is None:
                cell = TowerCell(tower=Tower(), last_update=self.clock())
                self._cells[validator_id] = cell
            return cell

    def snapshot(self, validator_id: Pubkey) -> Tower | None:
        """Current tower of a validator, or `None` if it is not tracked."""
        cell = self._cells.get(validator_id)
        return None if cell is None else cell.tower

    def validators(self) -> list[Pubkey]:
        """Tracked validators, in first-seen order."""
        return list(self._cells)

    def evict(self, validator_id: Pubkey) -> bool:
        """
        Forget a validator's tower.

        Returns:
            True if the validator was tracked.
        """
        with self._registry_lock:
            return self._cells.pop(validator_id, None) is not None

    def evict_idle(self, max_idle_seconds: float) -> list[Pubkey]:
        """
        Forget every validator that has not voted for `max_idle_seconds`.

        Returns:
            The evicted validators.
        """
        cutoff = self.clock() - max_idle_seconds
        with self._registry_lock:
            idle = [v for v, cell in self._cells.items() if cell.last_update < cutoff]
            for validator_id in idle:
                del self._cells[validator_id]
        return idle

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, validator_id: object) -> bool:
        return validator_id in self._cells

    def __iter__(self) -> Iterator[tuple[Pubkey, Tower]]:
        for validator_id, cell in list(self._cells.items()):
            yield validator_id, cell.tower
