"""API endpoint handlers."""

from . import health, metrics, towers

__all__ = [
    "health",
    "metrics",
    "towers",
]
