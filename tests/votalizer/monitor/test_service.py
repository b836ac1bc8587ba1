"""Tests for the worker service."""

from __future__ import annotations

import zlib

import pytest

from tests.votalizer.helpers import OBSERVED_AT, RecordingSink, make_pubkey, vote_frame
from votalizer.containers import Slot, Vote
from votalizer.detector import Incident, ViolationDetector
from votalizer.emitter import IncidentEmitter
from votalizer.feeder import BoundedChannel, FeedItem, RawNotification
from votalizer.monitor import MonitorService, SlotAncestryIndex, VotePipeline, shard_of
from votalizer.tower import TowerTracker


def _pipeline(cls: type[VotePipeline] = VotePipeline) -> tuple[VotePipeline, RecordingSink]:
    sink = RecordingSink()
    pipeline = cls(
        tracker=TowerTracker(),
        detector=ViolationDetector(),
        emitter=IncidentEmitter(sinks=[sink]),
        slot_index=SlotAncestryIndex(),
    )
    return pipeline, sink


def _closed_channel(*frames: str) -> BoundedChannel[FeedItem]:
    channel: BoundedChannel[FeedItem] = BoundedChannel(100)
    for frame in frames:
        channel.put_nowait(RawNotification(payload=frame, received_at=OBSERVED_AT, connection_id=1))
    channel.close()
    return channel


class TestShardOf:
    """Validator to worker assignment."""

    def test_stable_and_in_range(self) -> None:
        """The same validator always maps to the same worker."""
        for n in range(20):
            shard = shard_of(make_pubkey(n), 4)
            assert 0 <= shard < 4
            assert shard == shard_of(make_pubkey(n), 4)
            assert shard == zlib.crc32(make_pubkey(n)) % 4

    def test_single_worker(self) -> None:
        """Everything lands on worker zero."""
        assert {shard_of(make_pubkey(n), 1) for n in range(10)} == {0}


class TestRun:
    """Draining a closed feed."""

    @pytest.mark.asyncio
    async def test_processes_every_vote(self) -> None:
        """All votes of all validators are applied, in per-validator order."""
        frames = []
        for validator in range(6):
            frames.append(vote_frame(10, history=[8, 9], validator=validator))
            frames.append(vote_frame(11, history=[9, 10], validator=validator))
        pipeline, sink = _pipeline()
        service = MonitorService(pipeline=pipeline, channel=_closed_channel(*frames), workers=3)

        await service.run()

        assert pipeline.votes_processed == 12
        assert len(pipeline.tracker) == 6
        for _validator, tower in pipeline.tracker:
            assert tower.slots == (Slot(10), Slot(11))
        assert sink.delivered == []
        assert not service.is_running

    @pytest.mark.asyncio
    async def test_violation_detected_under_concurrency(self) -> None:
        """Sharding keeps each validator's votes in order, so violations are still seen."""
        frames = [vote_frame(10, history=[5, 6, 7, 8], validator=v) for v in range(4)]
        frames.append(vote_frame(9, fork=1, history=[5, 6, 7, 8], validator=2))
        pipeline, sink = _pipeline()
        service = MonitorService(pipeline=pipeline, channel=_closed_channel(*frames), workers=4)

        await service.run()

        assert [i.validator_id for i in sink.delivered] == [make_pubkey(2)]
        assert service.status_line() == (
            "tracking 4 validators, 5 votes processed, 1 incident observed"
        )

    @pytest.mark.asyncio
    async def test_undecodable_frames_are_skipped(self) -> None:
        """Bad frames never reach a worker."""
        pipeline, _ = _pipeline()
        channel = _closed_channel(vote_frame(10), "garbage", vote_frame(11, history=[10]))
        await MonitorService(pipeline=pipeline, channel=channel, workers=2).run()
        assert pipeline.decode_failures == 1
        assert pipeline.votes_processed == 2

    @pytest.mark.asyncio
    async def test_failing_vote_does_not_stop_worker(self) -> None:
        """An unexpected error on one vote is logged; later votes still run."""

        class ExplodingPipeline(VotePipeline):
            async def process(self, vote: Vote) -> Incident | None:
                if vote.slot == Slot(11):
                    raise RuntimeError("boom")
                return await super().process(vote)

        pipeline, _ = _pipeline(ExplodingPipeline)
        channel = _closed_channel(
            vote_frame(10), vote_frame(11, history=[10]), vote_frame(12, history=[10])
        )

        await MonitorService(pipeline=pipeline, channel=channel, workers=1).run()

        tower = pipeline.tracker.snapshot(make_pubkey(0))
        assert tower is not None
        assert tower.slots == (Slot(10), Slot(12))

    @pytest.mark.asyncio
    async def test_requires_a_worker(self) -> None:
        """Zero workers could never drain the feed."""
        pipeline, _ = _pipeline()
        with pytest.raises(ValueError, match="workers must be positive"):
            await MonitorService(pipeline=pipeline, channel=_closed_channel(), workers=0).run()


class TestStatusLine:
    """Progress reporting."""

    def test_without_incidents(self) -> None:
        """Incidents are only mentioned once there are some."""
        pipeline, _ = _pipeline()
        service = MonitorService(pipeline=pipeline, channel=_closed_channel())
        assert service.status_line() == "tracking 0 validators, 0 votes processed"

    def test_plural_incidents(self) -> None:
        """More than one incident is pluralized."""
        pipeline, _ = _pipeline()
        pipeline.detector.incidents_observed = 3
        service = MonitorService(pipeline=pipeline, channel=_closed_channel())
        assert service.status_line().endswith(", 3 incidents observed")
