"""Violation detector."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from votalizer import metrics
from votalizer.containers import Pubkey
from votalizer.tower import Accepted, Rejected, RejectReason, UpdateOutcome, Violated

from .incident import Incident, IncidentKind
from .report import render_report

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ViolationDetector:
    """
    Turns tower update outcomes into incidents.

    Only a `Violated` outcome yields an incident. Rejections are logged and
    counted but never accuse the validator.
    """

    clock: Callable[[], datetime] = _utcnow
    """Source of detection timestamps."""

    incidents_observed: int = field(default=0, init=False)
    """Incidents produced since startup."""

    def inspect(self, validator_id: Pubkey, outcome: UpdateOutcome) -> Incident | None:
        """
        Classify one outcome.

        Args:
            validator_id: Owner of the tower the outcome belongs to.
            outcome: Result of applying a vote to that tower.

        Returns:
            An incident for a violation, otherwise None.
        """
        match outcome:
            case Violated(violating_vote=vote, conflicting_entries=entries, tower=tower):
                kind = classify(outcome)
                incident = Incident(
                    validator_id=validator_id,
                    kind=kind,
                    violating_vote=vote,
                    conflicting_entries=entries,
                    tower_snapshot=tower,
                    detected_at=self.clock(),
                    transaction_signature=vote.transaction_signature,
                    explanation=render_report(kind, vote, entries, tower),
                )
                self.incidents_observed += 1
                metrics.incidents.labels(kind=str(kind)).inc()
                logger.error("%s", incident.summary)
                return incident

            case Rejected(reason=RejectReason.UNKNOWN_ANCESTRY, vote=vote, detail=detail):
                metrics.rejected_votes.labels(reason=str(RejectReason.UNKNOWN_ANCESTRY)).inc()
                logger.warning(
                    "Unknown ancestry for %s at slot %s: %s", validator_id, vote.slot, detail
                )

            case Rejected(reason=reason, vote=vote, detail=detail):
                metrics.rejected_votes.labels(reason=str(reason)).inc()
                logger.debug("Stale vote from %s at slot %s: %s", validator_id, vote.slot, detail)

            case Accepted():
                pass

        return None


def classify(outcome: Violated) -> IncidentKind:
    """A violation is retroactive when the vote lands at or below the tower's root."""
    root = outcome.tower.root_slot
    if root is not None and outcome.violating_vote.slot <= root:
        return IncidentKind.RETROACTIVE_VOTE
    return IncidentKind.LOCKOUT_VIOLATION
