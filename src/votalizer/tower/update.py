"""
Tower update function.

`process_vote` is the whole lockout state machine: a pure function from the
current tower and one new vote to an outcome and the resulting tower. It has
no hidden state and performs no I/O, so every decision it makes can be
replayed exactly.

Votes are split by direction relative to the last voted slot.

FORWARD VOTES
-------------
A vote above the last voted slot is what an honest validator emits. Walking
the stack from the top, each entry is either:

- expired: the vote slot reached its lockout expiration, so it may be popped
  whatever fork the vote is on,
- confirmed: the vote builds on it, so it and everything beneath it stay,
- conflicting: the vote provably skips it while it is still locked out,
- unresolved: still locked out, but the vote's ancestry says nothing about it.

Any conflicting entry makes the vote a violation. Otherwise any unresolved
entry makes it inconclusive. Otherwise the expired entries are popped and the
vote is pushed.

BACKWARD VOTES
--------------
A vote at or below the last voted slot is never pushed. It is a violation
only when it is proven to sit on a fork that abandons a stacked entry, at
or below the root included. Everything else is a stale vote: a replay, or a
reordered delivery.

LOCKOUT COUNTS
--------------
A reported confirmation count is taken as is. When the feed omits it, every
newly voted slot is pushed with a count of 1 and each entry the deeper stack
confirms gains one, doubling its lockout.
"""

from __future__ import annotations

from votalizer.containers import Hash, Slot, Vote

from .ancestry import Ancestry, Relation
from .constants import MAX_LOCKOUT_HISTORY, MAX_VOTE_HISTORY
from .entry import TowerEntry
from .outcome import Accepted, Rejected, RejectReason, TowerUpdate, UpdateOutcome, Violated
from .tower import Tower, VoteRecord


def process_vote(tower: Tower, vote: Vote) -> TowerUpdate:
    """
    Apply one vote to a tower.

    A vote with a reported confirmation count pushes its own slot with that
    count. A vote without one pushes every voted slot above the last voted
    slot in turn, each with a fresh count, and doubles the lockouts beneath
    it. The vote is accepted only if every one of those pushes is legal.

    Args:
        tower: The validator's current tower.
        vote: The new vote.

    Returns:
        The outcome and the resulting tower. The tower is the input object
        itself unless the vote was accepted.
    """
    last_voted = tower.last_voted_slot
    if last_voted is not None and vote.slot <= last_voted:
        return TowerUpdate(outcome=_classify_backward(tower, vote), tower=tower)

    if vote.confirmation_count is not None:
        slots = (vote.slot,)
    else:
        slots = tuple(s for s in vote.voted_slots if last_voted is None or s > last_voted)

    current = tower
    popped: list[TowerEntry] = []
    for slot in slots:
        outcome, current = _process_forward(current, vote, slot)
        match outcome:
            case Violated(conflicting_entries=conflicting):
                return TowerUpdate(
                    outcome=Violated(
                        violating_vote=vote, conflicting_entries=conflicting, tower=tower
                    ),
                    tower=tower,
                )
            case Rejected():
                return TowerUpdate(outcome=outcome, tower=tower)
            case Accepted(popped=expired):
                popped.extend(expired)

    return TowerUpdate(
        outcome=Accepted(vote=vote, popped=tuple(popped)),
        tower=_record(current, vote),
    )


def _process_forward(tower: Tower, vote: Vote, slot: Slot) -> tuple[UpdateOutcome, Tower]:
    """Push one voted slot above the top of the tower."""
    ancestry = _ancestry_of_slot(vote, slot)

    popped: list[TowerEntry] = []
    conflicting: list[TowerEntry] = []
    unresolved: list[TowerEntry] = []
    kept = len(tower.entries)

    for index in range(len(tower.entries) - 1, -1, -1):
        entry = tower.entries[index]
        if entry.is_expired_at(slot):
            popped.append(entry)
        else:
            relation = ancestry.relation_to(entry.slot, entry.hash)
            if relation is Relation.CONFIRMED:
                break
            if relation is Relation.CONFLICTING:
                conflicting.append(entry)
            else:
                unresolved.append(entry)
        kept = index

    if conflicting:
        violated = Violated(
            violating_vote=vote,
            conflicting_entries=tuple(reversed(conflicting)),
            tower=tower,
        )
        return violated, tower

    if unresolved:
        slots = ", ".join(str(entry.slot) for entry in reversed(unresolved))
        rejected = Rejected(
            vote=vote,
            reason=RejectReason.UNKNOWN_ANCESTRY,
            detail=f"cannot relate vote for slot {slot} to locked slots {slots}",
        )
        return rejected, tower

    entry = TowerEntry.from_vote(vote, slot)
    pushed = _push(tower, kept, entry, double=vote.confirmation_count is None)
    return Accepted(vote=vote, popped=tuple(popped)), pushed


def _ancestry_of_slot(vote: Vote, slot: Slot) -> Ancestry:
    """
    Ancestry of one voted slot.

    The vote's history below the slot, plus the transaction's earlier voted
    slots, which the validator builds on by voting them together. Only the
    history decides how far down the chain is known.
    """
    history = Ancestry.of(
        (a for a in vote.slot_history if a.slot < slot), complete=vote.history_complete
    )
    hashes: dict[Slot, Hash | None] = {s: None for s in vote.earlier_slots if s < slot}
    hashes.update(history.hashes)
    return Ancestry(hashes=hashes, lowest=history.lowest, complete=history.complete)


def _push(tower: Tower, kept: int, entry: TowerEntry, *, double: bool) -> Tower:
    """Build the tower that results from popping down to `kept` and pushing `entry`."""
    entries = tower.entries[:kept] + (entry,)
    root_slot = tower.root_slot

    # A full tower roots its bottom vote.
    while len(entries) > MAX_LOCKOUT_HISTORY:
        root_slot = entries[0].slot
        entries = entries[1:]

    if double:
        entries = _double_lockouts(entries)

    return Tower(entries=entries, root_slot=root_slot, vote_history=tower.vote_history)


def _double_lockouts(entries: tuple[TowerEntry, ...]) -> tuple[TowerEntry, ...]:
    """
    Grow the lockout of every entry that has gained a confirmation.

    An entry at depth `i` (bottom is 0) with count `c` is confirmed by every
    entry above it, so its count grows while the stack is deeper than `i + c`.
    """
    depth = len(entries)
    return tuple(
        entry.model_copy(update={"confirmation_count": entry.confirmation_count + 1})
        if depth > index + entry.confirmation_count
        else entry
        for index, entry in enumerate(entries)
    )


def _record(tower: Tower, vote: Vote) -> Tower:
    """Remember an accepted vote transaction."""
    record = VoteRecord(transaction_signature=vote.transaction_signature, slot=vote.slot)
    vote_history = (tower.vote_history + (record,))[-MAX_VOTE_HISTORY:]
    return tower.model_copy(update={"vote_history": vote_history})


def _classify_backward(tower: Tower, vote: Vote) -> UpdateOutcome:
    same_slot = tower.find(vote.slot)

    if tower.has_recorded(vote.transaction_signature, vote.slot) or (
        same_slot is not None and same_slot.hash in (None, vote.hash)
    ):
        return Rejected(
            vote=vote,
            reason=RejectReason.STALE_VOTE,
            detail=f"slot {vote.slot} already applied",
        )

    if tower.root_slot is not None and vote.slot <= tower.root_slot:
        return _classify_retroactive(tower, vote)

    if same_slot is not None:
        # Two different blocks at one slot: everything from that slot up is abandoned.
        return Violated(
            violating_vote=vote,
            conflicting_entries=tuple(e for e in tower.entries if e.slot >= vote.slot),
            tower=tower,
        )

    # Entries above the vote are judged by the ancestry they were pushed with.
    conflicting = tuple(
        entry
        for entry in tower.entries
        if entry.slot > vote.slot
        and Ancestry.of(entry.ancestors, complete=entry.ancestors_complete).relation_to(
            vote.slot, vote.hash
        )
        is Relation.CONFLICTING
    )
    if conflicting:
        return Violated(violating_vote=vote, conflicting_entries=conflicting, tower=tower)

    return Rejected(
        vote=vote,
        reason=RejectReason.STALE_VOTE,
        detail=f"slot {vote.slot} is not above last voted slot {tower.last_voted_slot}",
    )


def _classify_retroactive(tower: Tower, vote: Vote) -> UpdateOutcome:
    """
    Classify a vote at or below the root slot.

    Every stacked entry descends from the root, so a vote the bottom entry's
    ancestry proves to be off its chain contradicts all of them. A vote below
    the recorded ancestry proves nothing: it may be a late delivery of an old
    vote that is no longer in the vote history.
    """
    bottom = tower.entries[0] if tower.entries else None
    if bottom is not None:
        ancestry = Ancestry.of(bottom.ancestors, complete=bottom.ancestors_complete)
        if ancestry.relation_to(vote.slot, vote.hash) is Relation.CONFLICTING:
            return Violated(violating_vote=vote, conflicting_entries=tower.entries, tower=tower)

    return Rejected(
        vote=vote,
        reason=RejectReason.STALE_VOTE,
        detail=f"slot {vote.slot} is at or below root slot {tower.root_slot}",
    )
