"""Tests for decoding, enrichment and processing of feed items."""

from __future__ import annotations

import json

import pytest

from tests.votalizer.helpers import (
    OBSERVED_AT,
    RecordingSink,
    make_hash,
    make_pubkey,
    make_vote,
    slot_frame,
    vote_frame,
    vote_result,
)
from votalizer.containers import Slot, Vote
from votalizer.detector import IncidentKind, ViolationDetector
from votalizer.emitter import IncidentEmitter
from votalizer.feeder import ConnectionGap, FeedItem, RawNotification
from votalizer.monitor import SlotAncestryIndex, VotePipeline
from votalizer.tower import TowerTracker


def _pipeline() -> tuple[VotePipeline, RecordingSink]:
    sink = RecordingSink()
    pipeline = VotePipeline(
        tracker=TowerTracker(),
        detector=ViolationDetector(),
        emitter=IncidentEmitter(sinks=[sink]),
        slot_index=SlotAncestryIndex(),
    )
    return pipeline, sink


def _raw(payload: str, connection_id: int = 1) -> RawNotification:
    return RawNotification(payload=payload, received_at=OBSERVED_AT, connection_id=connection_id)


def _sparse_frame(slots: list[int], validator: int = 0) -> str:
    result = vote_result(max(slots), validator=validator)
    del result["slot"], result["slotHistory"]
    result["slots"] = slots
    return json.dumps(
        {"jsonrpc": "2.0", "method": "voteNotification", "params": {"result": result}}
    )


def _uncounted_frame(slot: int, fork: int = 0) -> str:
    result = vote_result(slot, fork=fork)
    del result["slot"], result["confirmationCount"], result["slotHistory"]
    result["slots"] = [slot]
    return json.dumps(
        {"jsonrpc": "2.0", "method": "voteNotification", "params": {"result": result}}
    )


async def _run(pipeline: VotePipeline, items: list[FeedItem]) -> list[Vote]:
    votes = []
    for item in items:
        vote = pipeline.route(item)
        if vote is not None:
            await pipeline.process(vote)
            votes.append(vote)
    return votes


class TestRoute:
    """Per-item dispatch in feed order."""

    def test_vote_notification(self) -> None:
        """Vote frames decode to votes stamped with their receipt time."""
        pipeline, _ = _pipeline()
        vote = pipeline.route(_raw(vote_frame(10)))
        assert vote is not None
        assert vote.slot == Slot(10)
        assert vote.observed_at == OBSERVED_AT

    def test_slot_notification_feeds_index(self) -> None:
        """Slot frames update the block tree and yield no vote."""
        pipeline, _ = _pipeline()
        assert pipeline.route(_raw(slot_frame(10, 9))) is None
        assert Slot(10) in pipeline.slot_index

    @pytest.mark.parametrize(
        "payload",
        [
            '{"jsonrpc": "2.0", "result": 3, "id": 1}',
            '{"jsonrpc": "2.0", "error": {"code": -1, "message": "x"}, "id": 2}',
            '{"jsonrpc": "2.0", "method": "rootNotification", "params": {"result": 4}}',
        ],
    )
    def test_other_frames_are_ignored(self, payload: str) -> None:
        """Late responses and foreign notifications are skipped without failure."""
        pipeline, _ = _pipeline()
        assert pipeline.route(_raw(payload)) is None
        assert pipeline.decode_failures == 0

    def test_undecodable_frame_is_counted(self) -> None:
        """Garbage is logged and counted, never raised."""
        pipeline, _ = _pipeline()
        assert pipeline.route(_raw("{not json")) is None
        assert pipeline.route(_raw('{"votePubkey": "abc"}')) is None
        assert pipeline.decode_failures == 2

    def test_gap_is_counted(self) -> None:
        """Reconnects are visible in the pipeline's counters."""
        pipeline, _ = _pipeline()
        gap = ConnectionGap(
            previous_connection_id=1,
            connection_id=2,
            disconnected_at=OBSERVED_AT,
            reason="closed",
        )
        assert pipeline.route(gap) is None
        assert pipeline.connection_gaps == 1


class TestProcess:
    """Applying votes end to end."""

    @pytest.mark.asyncio
    async def test_bad_frame_between_valid_votes(self) -> None:
        """A malformed frame affects neither its neighbours nor the tower."""
        pipeline, sink = _pipeline()

        votes = await _run(
            pipeline,
            [_raw(vote_frame(10)), _raw("\x00garbage"), _raw(vote_frame(11, history=[10]))],
        )

        assert [int(v.slot) for v in votes] == [10, 11]
        assert pipeline.decode_failures == 1
        assert pipeline.votes_processed == 2
        tower = pipeline.tracker.snapshot(make_pubkey(0))
        assert tower is not None
        assert tower.slots == (Slot(10), Slot(11))
        assert sink.delivered == []

    @pytest.mark.asyncio
    async def test_violation_is_published(self) -> None:
        """A lockout violation reaches the sinks with its evidence."""
        pipeline, sink = _pipeline()

        await _run(
            pipeline,
            [
                _raw(vote_frame(10, history=[5, 6, 7, 8])),
                _raw(vote_frame(9, fork=1, history=[5, 6, 7, 8])),
            ],
        )

        assert len(sink.delivered) == 1
        incident = sink.delivered[0]
        assert incident.kind is IncidentKind.LOCKOUT_VIOLATION
        assert incident.violating_vote.slot == Slot(9)
        assert pipeline.detector.incidents_observed == 1

    @pytest.mark.asyncio
    async def test_gap_does_not_create_false_violation(self) -> None:
        """Votes missed during a reconnect are never read as a fork switch."""
        pipeline, sink = _pipeline()
        gap = ConnectionGap(
            previous_connection_id=1,
            connection_id=2,
            disconnected_at=OBSERVED_AT,
            reason="closed",
        )

        await _run(
            pipeline,
            [
                _raw(vote_frame(10, confirmation_count=3, history=[8, 9])),
                gap,
                _raw(_sparse_frame([12, 13]), connection_id=2),
            ],
        )

        assert sink.delivered == []
        tower = pipeline.tracker.snapshot(make_pubkey(0))
        assert tower is not None
        assert tower.slots == (Slot(10),)

    @pytest.mark.asyncio
    async def test_validators_do_not_interfere(self) -> None:
        """A violation by one validator leaves the other's tower alone."""
        pipeline, sink = _pipeline()

        await _run(
            pipeline,
            [
                _raw(vote_frame(10, history=[5, 6, 7, 8], validator=1)),
                _raw(vote_frame(10, history=[5, 6, 7, 8], validator=2)),
                _raw(vote_frame(9, fork=1, history=[5, 6, 7, 8], validator=1)),
                _raw(vote_frame(11, history=[8, 10], validator=2)),
            ],
        )

        assert [i.validator_id for i in sink.delivered] == [make_pubkey(1)]
        tower = pipeline.tracker.snapshot(make_pubkey(2))
        assert tower is not None
        assert tower.slots == (Slot(10), Slot(11))


class TestEnrich:
    """Filling in ancestry from slot notifications."""

    @pytest.mark.asyncio
    async def test_sparse_vote_resolved_by_slot_index(self) -> None:
        """With the block tree known, a sparse vote can be pushed."""
        pipeline, _ = _pipeline()
        items: list[FeedItem] = [
            _raw(vote_frame(10, confirmation_count=3, history=[8, 9])),
            _raw(slot_frame(11, 10)),
            _raw(slot_frame(12, 11)),
            _raw(slot_frame(13, 12)),
            _raw(_sparse_frame([12, 13])),
        ]

        await _run(pipeline, items)

        tower = pipeline.tracker.snapshot(make_pubkey(0))
        assert tower is not None
        assert tower.slots == (Slot(10), Slot(13))
        top = tower.top
        assert top is not None
        assert top.ancestors_complete
        assert [int(a.slot) for a in top.ancestors] == [10, 11, 12]

    @pytest.mark.asyncio
    async def test_sparse_vote_on_other_fork_is_caught(self) -> None:
        """The block tree proves a fork switch the sparse vote alone could not."""
        pipeline, sink = _pipeline()
        items: list[FeedItem] = [
            _raw(vote_frame(10, confirmation_count=3, history=[8, 9])),
            _raw(slot_frame(10, 9)),
            _raw(slot_frame(11, 9)),
            _raw(slot_frame(12, 11)),
            _raw(_sparse_frame([11, 12])),
        ]

        await _run(pipeline, items)

        assert len(sink.delivered) == 1
        assert [int(e.slot) for e in sink.delivered[0].conflicting_entries] == [10]

    @pytest.mark.asyncio
    async def test_fork_switch_after_uncounted_votes(self) -> None:
        """Single-slot votes without counts still build lockouts that a fork switch breaks."""
        pipeline, sink = _pipeline()
        items: list[FeedItem] = [_raw(slot_frame(100, 99))]
        items += [_raw(slot_frame(slot, slot - 1)) for slot in range(101, 111)]
        items += [_raw(slot_frame(111, 100)), _raw(slot_frame(112, 111))]
        items += [_raw(_uncounted_frame(slot)) for slot in range(100, 111)]
        items.append(_raw(_uncounted_frame(112, fork=1)))

        await _run(pipeline, items)

        assert len(sink.delivered) == 1
        incident = sink.delivered[0]
        assert incident.violating_vote.slot == Slot(112)
        assert [int(e.slot) for e in incident.conflicting_entries] == list(range(101, 110))

    def test_complete_history_is_kept(self) -> None:
        """Votes that already carry a full chain are not touched."""
        pipeline, _ = _pipeline()
        pipeline.route(_raw(slot_frame(11, 10)))
        vote = pipeline.route(_raw(vote_frame(11, history=[9, 10])))
        assert vote is not None
        assert pipeline.enrich(vote) is vote

    def test_unknown_slot_is_left_alone(self) -> None:
        """Without slot notifications there is nothing to add."""
        pipeline, _ = _pipeline()
        vote = pipeline.route(_raw(_sparse_frame([12, 13])))
        assert vote is not None
        assert pipeline.enrich(vote) is vote

    def test_reported_hashes_survive(self) -> None:
        """Hashes the vote reported are kept on the indexed chain."""
        pipeline, _ = _pipeline()
        pipeline.route(_raw(slot_frame(12, 11)))
        pipeline.route(_raw(slot_frame(13, 12)))

        enriched = pipeline.enrich(make_vote(13, history=[12], complete=False))

        assert enriched.history_complete
        assert enriched.ancestry() == {Slot(11): None, Slot(12): make_hash(12)}
