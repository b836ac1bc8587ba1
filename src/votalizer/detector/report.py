"""
Incident report text.

The report is meant to be read by an operator deciding whether to escalate,
so it spells out the tower, where the two forks diverge and which vote
transactions led there.
"""

from __future__ import annotations

from collections.abc import Iterable

from votalizer.containers import Slot, Vote
from votalizer.tower import Tower, TowerEntry

from .incident import IncidentKind


def _join(slots: Iterable[Slot]) -> str:
    return ", ".join(str(slot) for slot in slots)


def _expiration(entry: TowerEntry) -> int:
    return int(entry.slot) + entry.lockout


def render_report(
    kind: IncidentKind,
    vote: Vote,
    conflicting_entries: tuple[TowerEntry, ...],
    tower: Tower,
) -> str:
    """
    Render the explanation of a violation.

    Ancestor slots at or below the tower's root are left out, since both
    forks share them by definition.

    Args:
        kind: Violation classification.
        vote: The violating vote.
        conflicting_entries: Entries whose lockout was broken, bottom first.
        tower: The tower before the violating vote.

    Returns:
        Multi-line report text.
    """
    # The highest broken entry is the one the vote most directly abandons.
    lockout = conflicting_entries[-1] if conflicting_entries else tower.top
    floor = tower.root_slot

    lines = [
        f"lockout violation: {vote.validator_id}",
        f"kind: {kind}",
        f"signature: {vote.transaction_signature}",
        f"vote slot: {vote.slot}",
        f"root slot: {'none' if floor is None else floor}",
    ]
    if lockout is not None:
        lines.append(f"lockout slot: {lockout.slot} (expires at slot {_expiration(lockout)})")

    lines.append("tower:")
    for entry in tower.entries:
        lines.append(
            f"  - {entry.slot} (conf: {entry.confirmation_count}), "
            f"lockout expires at slot: {_expiration(entry)} [{entry.transaction_signature}]"
        )

    if lockout is not None:
        vote_ancestors = {
            a.slot for a in vote.slot_history if floor is None or a.slot > floor
        }
        lockout_ancestors = {
            a.slot for a in lockout.ancestors if floor is None or a.slot > floor
        }
        common = vote_ancestors & lockout_ancestors

        lines.append(f"fork at vote slot {vote.slot} to common ancestor:")
        lines.append(f"  - {_join(sorted(vote_ancestors - common, reverse=True))}")
        lines.append(f"fork at lockout slot {lockout.slot} to common ancestor:")
        lines.append(f"  - {_join(sorted(lockout_ancestors - common, reverse=True))}")
        lines.append("common fork ancestors:")
        lines.append(f"  - {_join(sorted(common, reverse=True))}")

    lines.append("vote transaction history:")
    for record in tower.vote_history:
        lines.append(f"  - {record.slot} [{record.transaction_signature}]")

    return "\n".join(lines) + "\n"
