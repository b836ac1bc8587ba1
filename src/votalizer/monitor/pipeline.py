"""
Vote processing pipeline.

Two stages, split so that per-validator work can run in parallel:

1. `route` runs once per feed item, in feed order. It decodes the frame,
   feeds slot notifications to the ancestry index and hands votes on.
2. `process` runs once per vote, always on the worker that owns the vote's
   validator. It fills in missing ancestry, applies the vote to the tower,
   classifies the outcome and publishes any incident.

A frame that cannot be decoded is logged, counted and skipped. It never
affects the frames around it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime

from votalizer import metrics
from votalizer.containers import AncestorSlot, Vote
from votalizer.decoder import (
    SLOT_NOTIFICATION,
    VOTE_NOTIFICATION,
    DecodeError,
    decode_slot_update,
    decode_vote,
    notification_method,
    parse_frame,
)
from votalizer.detector import Incident, ViolationDetector
from votalizer.emitter import IncidentEmitter
from votalizer.feeder import ConnectionGap, FeedItem, RawNotification
from votalizer.tower import TowerTracker

from .slot_index import SlotAncestryIndex

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class VotePipeline:
    """Decode, track, detect and emit."""

    tracker: TowerTracker
    """Per-validator tower state."""

    detector: ViolationDetector
    """Outcome classifier."""

    emitter: IncidentEmitter
    """Incident fan-out."""

    slot_index: SlotAncestryIndex = field(default_factory=SlotAncestryIndex)
    """Block tree learned from slot notifications."""

    votes_processed: int = field(default=0, init=False)
    """Votes applied to a tower."""

    decode_failures: int = field(default=0, init=False)
    """Frames discarded as undecodable."""

    connection_gaps: int = field(default=0, init=False)
    """Reconnects observed in the feed."""

    def route(self, item: FeedItem) -> Vote | None:
        """
        Handle one feed item in feed order.

        Returns:
            The decoded vote, if the item carried one.
        """
        match item:
            case ConnectionGap(
                previous_connection_id=previous, connection_id=current, reason=reason
            ):
                self.connection_gaps += 1
                logger.warning(
                    "Feed gap between connections %d and %d (%s): votes may have been missed",
                    previous,
                    current,
                    reason,
                )
                return None

            case RawNotification(payload=payload, received_at=received_at):
                try:
                    return self._decode(payload, received_at)
                except DecodeError as e:
                    self.decode_failures += 1
                    metrics.decode_failures.inc()
                    logger.warning("Discarding undecodable notification: %s", e.message)
                    return None

        return None

    def _decode(self, payload: str | bytes, received_at: datetime) -> Vote | None:
        frame = parse_frame(payload)
        method = notification_method(frame)

        if method == SLOT_NOTIFICATION:
            self.slot_index.observe(decode_slot_update(frame))
            return None

        if method is None and ("id" in frame or "error" in frame):
            # Late JSON-RPC response, not a notification.
            logger.debug("Ignoring JSON-RPC response %s", frame.get("id"))
            return None

        if method not in (None, VOTE_NOTIFICATION):
            logger.debug("Ignoring %s notification", method)
            return None

        vote = decode_vote(frame, observed_at=received_at)
        if vote.timestamp is None:
            logger.debug("%s did not publish a timestamp", vote.validator_id)
        return vote

    def enrich(self, vote: Vote) -> Vote:
        """
        Replace a missing or sparse slot history with the indexed ancestry.

        The indexed chain is cut just below the validator's lowest stacked
        slot, since nothing lower can decide any entry.
        """
        if vote.history_complete and vote.slot_history:
            return vote

        tower = self.tracker.snapshot(vote.validator_id)
        floor = None
        if tower is not None:
            floor = tower.entries[0].slot if tower.entries else tower.root_slot

        chain = self.slot_index.ancestors(vote.slot, floor)
        if not chain:
            return vote

        # Keep any hashes the vote itself reported for slots on the chain.
        reported = vote.ancestry()
        history = tuple(AncestorSlot(slot=slot, hash=reported.get(slot)) for slot in chain)
        return vote.with_history(history, complete=True)

    async def process(self, vote: Vote) -> Incident | None:
        """
        Apply one vote and publish the incident it proves, if any.

        Returns:
            The incident, if the vote was a violation.
        """
        started = time.perf_counter()

        vote = self.enrich(vote)
        outcome = self.tracker.apply(vote.validator_id, vote)
        incident = self.detector.inspect(vote.validator_id, outcome)

        self.votes_processed += 1
        metrics.votes_processed.inc()
        metrics.towers_tracked.set(len(self.tracker))
        metrics.vote_processing_time.observe(time.perf_counter() - started)

        if incident is not None:
            await self.emitter.publish(incident)
        return incident
