"""Tests for the bounded drop-oldest channel."""

from __future__ import annotations

import asyncio

import pytest

from votalizer.feeder import BoundedChannel, ChannelClosedError


def test_capacity_must_be_positive() -> None:
    """A channel that holds nothing is useless."""
    with pytest.raises(ValueError, match="positive"):
        BoundedChannel[int](0)


@pytest.mark.asyncio
async def test_items_come_out_in_order() -> None:
    """First in, first out."""
    channel: BoundedChannel[int] = BoundedChannel(10)
    for i in range(5):
        assert channel.put_nowait(i)
    assert [await channel.get() for _ in range(5)] == [0, 1, 2, 3, 4]


def test_overflow_drops_oldest() -> None:
    """A full channel makes room by discarding its oldest item."""
    dropped: list[int] = []
    channel: BoundedChannel[int] = BoundedChannel(3, on_drop=dropped.append)

    results = [channel.put_nowait(i) for i in range(5)]

    assert results == [True, True, True, False, False]
    assert dropped == [0, 1]
    assert channel.dropped == 2
    assert len(channel) == 3


@pytest.mark.asyncio
async def test_get_waits_for_an_item() -> None:
    """A consumer blocks until the producer puts something."""
    channel: BoundedChannel[str] = BoundedChannel(2)
    getter = asyncio.create_task(channel.get())
    await asyncio.sleep(0)
    assert not getter.done()

    channel.put_nowait("frame")

    assert await asyncio.wait_for(getter, 1) == "frame"


@pytest.mark.asyncio
async def test_close_drains_then_stops_iteration() -> None:
    """Buffered items survive closing; iteration ends after them."""
    channel: BoundedChannel[int] = BoundedChannel(5)
    channel.put_nowait(1)
    channel.put_nowait(2)
    channel.close()

    assert channel.closed
    assert [item async for item in channel] == [1, 2]
    with pytest.raises(ChannelClosedError):
        await channel.get()


@pytest.mark.asyncio
async def test_close_wakes_a_waiting_consumer() -> None:
    """A consumer blocked on an empty channel is released by close."""
    channel: BoundedChannel[int] = BoundedChannel(5)
    getter = asyncio.create_task(channel.get())
    await asyncio.sleep(0)

    channel.close()

    with pytest.raises(ChannelClosedError):
        await asyncio.wait_for(getter, 1)


def test_put_after_close_raises() -> None:
    """Producers learn the channel is gone."""
    channel: BoundedChannel[int] = BoundedChannel(5)
    channel.close()
    with pytest.raises(ChannelClosedError):
        channel.put_nowait(1)
