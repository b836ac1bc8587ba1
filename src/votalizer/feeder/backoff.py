"""Reconnect backoff."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

INITIAL_DELAY: Final = 0.5
"""Delay before the first reconnect attempt, in seconds."""

BACKOFF_FACTOR: Final = 2.0
"""Growth of the delay per failed attempt."""

MAX_DELAY: Final = 30.0
"""Upper bound on any single delay, in seconds."""


@dataclass(slots=True)
class Backoff:
    """
    Exponential backoff with a capped delay.

    The n-th consecutive failure waits `min(max_delay, initial * factor**n)`.
    A successful connection resets the sequence.
    """

    initial: float = INITIAL_DELAY
    """First delay."""

    factor: float = BACKOFF_FACTOR
    """Multiplier per attempt."""

    max_delay: float = MAX_DELAY
    """Delay cap."""

    attempts: int = field(default=0, init=False)
    """Consecutive failures since the last reset."""

    def __post_init__(self) -> None:
        if self.initial <= 0 or self.factor < 1 or self.max_delay < self.initial:
            raise ValueError(
                f"invalid backoff: initial={self.initial}, "
                f"factor={self.factor}, max_delay={self.max_delay}"
            )

    def next_delay(self) -> float:
        """Delay before the next attempt. Advances the sequence."""
        # Cap the exponent so the float never overflows on long outages.
        exponent = min(self.attempts, 64)
        self.attempts += 1
        return min(self.max_delay, self.initial * self.factor**exponent)

    def reset(self) -> None:
        """Start over after a success."""
        self.attempts = 0
