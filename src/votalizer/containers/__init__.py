"""The container types for the lockout monitor."""

from .identifiers import Hash, Pubkey, Signature
from .slot import Slot, SlotUpdate
from .vote import INITIAL_CONFIRMATION_COUNT, MAX_CONFIRMATION_COUNT, AncestorSlot, Vote

__all__ = [
    "INITIAL_CONFIRMATION_COUNT",
    "MAX_CONFIRMATION_COUNT",
    "AncestorSlot",
    "Hash",
    "Pubkey",
    "Signature",
    "Slot",
    "SlotUpdate",
    "Vote",
]
