"""
Tower tracking constants.

Protocol parameters of the lockout stack plus the memory bounds the tracker
applies to the evidence it keeps per validator.
"""

from __future__ import annotations

from typing import Final

MAX_LOCKOUT_HISTORY: Final[int] = 31
"""
Maximum depth of a validator's tower.

When a push would exceed this depth the bottom vote becomes the tower's
root: it is final from the validator's point of view and is never popped.
"""

MAX_VOTE_HISTORY: Final[int] = 64
"""Accepted vote transactions remembered per validator for replay detection and reports."""

MAX_ENTRY_ANCESTORS: Final[int] = 64
"""
Ancestor slots remembered per tower entry.

Only needed to judge votes that arrive for a slot below an already stacked
entry. A backward vote deeper than this below every entry is inconclusive.
"""
