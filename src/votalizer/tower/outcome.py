"""
Tower update outcomes.

Every vote applied to a tower produces exactly one outcome:

- `Accepted`: a legal update; the tower moved forward.
- `Violated`: the vote abandons stacked entries whose lockout has not
  expired. The tower is left unchanged.
- `Rejected`: the vote cannot be applied but proves nothing against the
  validator (a replay, an out-of-order vote, or ancestry we never saw).
  The tower is left unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from votalizer.containers import Vote

from .entry import TowerEntry
from .tower import Tower


class RejectReason(StrEnum):
    """Why a vote was rejected without being a violation."""

    STALE_VOTE = "StaleVote"
    """The vote slot is not above the last voted slot, and no lockout is proven broken."""

    UNKNOWN_ANCESTRY = "UnknownAncestry"
    """The vote would pop live entries whose fork relation cannot be established."""


@dataclass(frozen=True, slots=True)
class Accepted:
    """The vote was a legal tower update and has been pushed."""

    vote: Vote
    """The applied vote."""

    popped: tuple[TowerEntry, ...] = ()
    """Entries removed because their lockout had expired, top first."""


@dataclass(frozen=True, slots=True)
class Violated:
    """The vote breaks the lockout of one or more stacked entries."""

    violating_vote: Vote
    """The vote that abandons locked entries."""

    conflicting_entries: tuple[TowerEntry, ...]
    """Entries whose lockout the vote breaks, bottom first."""

    tower: Tower
    """The tower exactly as it was before the vote."""


@dataclass(frozen=True, slots=True)
class Rejected:
    """The vote was not applied, and nothing is proven against the validator."""

    vote: Vote
    """The rejected vote."""

    reason: RejectReason
    """Classification of the rejection."""

    detail: str = ""
    """Human-readable context for logs."""


UpdateOutcome = Accepted | Violated | Rejected
"""Union of all outcomes of a tower update."""


@dataclass(frozen=True, slots=True)
class TowerUpdate:
    """Result of the pure update function: the outcome and the resulting tower."""

    outcome: UpdateOutcome
    """What happened."""

    tower: Tower
    """The tower after the update (the same object unless the vote was accepted)."""
