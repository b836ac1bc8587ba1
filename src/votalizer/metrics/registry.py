"""
Metric registry using prometheus_client.

Provides pre-defined metrics for the lockout monitor.
Exposes metrics in Prometheus text format via the /metrics endpoint.
"""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Create a dedicated registry for votalizer metrics.
#
# Using a dedicated registry avoids pollution from default Python process metrics.
REGISTRY = CollectorRegistry()

# -----------------------------------------------------------------------------
# Ingestion
# -----------------------------------------------------------------------------

votes_processed = Counter(
    "votalizer_votes_processed_total",
    "Total votes applied to a tower",
    registry=REGISTRY,
)

decode_failures = Counter(
    "votalizer_decode_failures_total",
    "Notifications discarded because they could not be decoded",
    registry=REGISTRY,
)

notifications_dropped = Counter(
    "votalizer_notifications_dropped_total",
    "Notifications dropped because the inbound buffer was full",
    registry=REGISTRY,
)

reconnects = Counter(
    "votalizer_reconnects_total",
    "Subscription reconnect attempts",
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Tower Tracking
# -----------------------------------------------------------------------------

towers_tracked = Gauge(
    "votalizer_towers_tracked",
    "Validators with a tracked tower",
    registry=REGISTRY,
)

rejected_votes = Counter(
    "votalizer_rejected_votes_total",
    "Votes rejected without proving a violation",
    ["reason"],
    registry=REGISTRY,
)

vote_processing_time = Histogram(
    "votalizer_vote_processing_seconds",
    "Tower update and detection duration per vote",
    buckets=(0.0001, 0.00025, 0.0005, 0.001, 0.0025, 0.005, 0.01, 0.05),
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Incidents
# -----------------------------------------------------------------------------

incidents = Counter(
    "votalizer_incidents_total",
    "Lockout incidents detected",
    ["kind"],
    registry=REGISTRY,
)

notifier_failures = Counter(
    "votalizer_notifier_failures_total",
    "Incident deliveries that failed at a sink",
    ["sink"],
    registry=REGISTRY,
)


def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics output.

    Returns:
        Prometheus text format output as bytes.
    """
    return generate_latest(REGISTRY)
