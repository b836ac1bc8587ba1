"""
Metrics module for observability.

Provides counters, gauges, and histograms for tracking the monitor's behavior.
Exposes metrics in Prometheus text format.
"""

from .registry import (
    REGISTRY,
    decode_failures,
    generate_metrics,
    incidents,
    notifications_dropped,
    notifier_failures,
    reconnects,
    rejected_votes,
    towers_tracked,
    vote_processing_time,
    votes_processed,
)

__all__ = [
    "REGISTRY",
    "decode_failures",
    "generate_metrics",
    "incidents",
    "notifications_dropped",
    "notifier_failures",
    "reconnects",
    "rejected_votes",
    "towers_tracked",
    "vote_processing_time",
    "votes_processed",
]
