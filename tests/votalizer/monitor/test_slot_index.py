"""Tests for the block tree learned from slot notifications."""

from votalizer.containers import Slot, SlotUpdate
from votalizer.monitor import SlotAncestryIndex


def _index(*links: tuple[int, int], **kwargs: int) -> SlotAncestryIndex:
    index = SlotAncestryIndex(**kwargs)
    for slot, parent in links:
        index.observe(SlotUpdate(slot=Slot(slot), parent=Slot(parent)))
    return index


def _ints(chain: tuple[Slot, ...] | None) -> list[int] | None:
    return None if chain is None else [int(s) for s in chain]


def test_observe_reports_new_slots() -> None:
    """A slot is recorded once; its parent never changes."""
    index = SlotAncestryIndex()
    assert index.observe(SlotUpdate(slot=Slot(5), parent=Slot(4)))
    assert not index.observe(SlotUpdate(slot=Slot(5), parent=Slot(3)))
    assert len(index) == 1
    assert Slot(5) in index
    assert _ints(index.ancestors(Slot(5))) == [4]


def test_root_follows_notifications() -> None:
    """The latest reported root is kept."""
    index = SlotAncestryIndex()
    assert index.root is None
    index.observe(SlotUpdate(slot=Slot(5), parent=Slot(4), root=Slot(2)))
    index.observe(SlotUpdate(slot=Slot(5), parent=Slot(4), root=Slot(3)))
    assert index.root == Slot(3)


def test_ancestors_walk_parent_links() -> None:
    """The chain runs down to the first slot the index never saw."""
    index = _index((11, 10), (12, 11), (14, 12), (10, 8))
    assert _ints(index.ancestors(Slot(14))) == [8, 10, 11, 12]


def test_unknown_slot() -> None:
    """Unobserved slots have no known ancestry."""
    assert _index((11, 10)).ancestors(Slot(12)) is None


def test_forks_have_separate_chains() -> None:
    """Siblings share only their common ancestors."""
    index = _index((11, 10), (12, 11), (13, 11))
    assert _ints(index.ancestors(Slot(12))) == [10, 11]
    assert _ints(index.ancestors(Slot(13))) == [10, 11]
    index.observe(SlotUpdate(slot=Slot(15), parent=Slot(13)))
    assert Slot(12) not in (index.ancestors(Slot(15)) or ())


def test_floor_cuts_the_walk() -> None:
    """The walk stops at the first ancestor below the floor."""
    index = _index(*((s, s - 1) for s in range(1, 50)))
    assert _ints(index.ancestors(Slot(20), floor=Slot(15))) == list(range(14, 20))


def test_chain_length_is_bounded() -> None:
    """Very long chains are cut to the configured length, keeping the top."""
    index = _index(*((s, s - 1) for s in range(1, 50)), max_ancestors=5)
    assert _ints(index.ancestors(Slot(40))) == [35, 36, 37, 38, 39]


def test_lowest_slots_are_evicted_first() -> None:
    """The index holds a bounded number of slots."""
    index = _index((30, 29), (10, 9), (20, 19), (40, 39), max_slots=3)
    assert len(index) == 3
    assert Slot(10) not in index
    assert Slot(30) in index
