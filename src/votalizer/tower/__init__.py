"""
Tower tracking.

The lockout stack of every observed validator and the pure update function
that decides whether each new vote is a legal tower update.
"""

from .ancestry import Ancestry, Relation
from .constants import MAX_ENTRY_ANCESTORS, MAX_LOCKOUT_HISTORY, MAX_VOTE_HISTORY
from .entry import TowerEntry
from .outcome import Accepted, Rejected, RejectReason, TowerUpdate, UpdateOutcome, Violated
from .tower import Tower, VoteRecord
from .tracker import TowerCell, TowerTracker
from .update import process_vote

__all__ = [
    "MAX_ENTRY_ANCESTORS",
    "MAX_LOCKOUT_HISTORY",
    "MAX_VOTE_HISTORY",
    "Accepted",
    "Ancestry",
    "Rejected",
    "RejectReason",
    "Relation",
    "Tower",
    "TowerCell",
    "TowerEntry",
    "TowerTracker",
    "TowerUpdate",
    "UpdateOutcome",
    "Violated",
    "VoteRecord",
    "process_vote",
]
