"""Test that stopping a consumer stops the work upstream of it."""

import asyncio

import pytest

import streamchain as sc


class SlowProducer:
    """Test helper for simulating slow data production."""

    def __init__(self, max_items: int = 1000, delay: float = 0.01):
        self.max_items = max_items
        self.delay = delay
        self.produced_count = 0

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.produced_count >= self.max_items:
            raise StopAsyncIteration

        current = self.produced_count
        self.produced_count += 1

        # Simulate slow production
        await asyncio.sleep(self.delay)
        return current


@pytest.mark.asyncio
async def test_backpressure_throttles_producer():
    """A slow stage keeps a fast producer only a few items ahead."""
    producer = SlowProducer(max_items=100, delay=0)
    gap = []

    async def slow(x):
        await asyncio.sleep(0.005)
        gap.append(producer.produced_count - x)
        return x

    result = await sc.StreamProcessor().map(slow).collect(producer)

    assert result == list(range(100))
    # one chunk in the stage, one buffered in each channel, one in the producer
    assert max(gap) <= 4


@pytest.mark.asyncio
async def test_cancelling_sink_stops_producer():
    producer = SlowProducer(max_items=1000, delay=0.005)
    sink = sc.StreamProcessor().map(lambda x: x * 2).start(producer)

    received = []
    async for item in sink:
        received.append(item)
        if len(received) == 3:
            break

    sink.cancel()
    await asyncio.wait_for(sink.tasks.wait(), timeout=2)
    await asyncio.sleep(0.05)

    assert received == [0, 2, 4]
    assert producer.produced_count < 20


@pytest.mark.asyncio
async def test_failure_stops_producer():
    producer = SlowProducer(max_items=1000, delay=0.001)

    def boom(x):
        if x == 2:
            raise ValueError("stop here")
        return x

    with pytest.raises(sc.TransformError):
        await sc.StreamProcessor().map(boom).collect(producer)

    await asyncio.sleep(0.05)
    assert producer.produced_count < 10


@pytest.mark.asyncio
async def test_cancelled_collect_tears_down_chain():
    started = asyncio.Event()

    async def forever(x):
        started.set()
        await asyncio.sleep(3600)
        return x

    processor = sc.StreamProcessor().map(forever)
    collecting = asyncio.create_task(processor.collect(range(3)))

    await asyncio.wait_for(started.wait(), timeout=1)
    collecting.cancel()

    with pytest.raises(asyncio.CancelledError):
        await collecting


@pytest.mark.asyncio
async def test_failing_group_by_key_stops_chain():
    producer = SlowProducer(max_items=1000, delay=0.001)

    def key(x):
        if x == 1:
            raise ValueError("bad key")
        return x % 2

    with pytest.raises(sc.TransformError, match="bad key"):
        await sc.StreamProcessor().group_by(producer, key)

    await asyncio.sleep(0.05)
    assert producer.produced_count < 10


@pytest.mark.asyncio
async def test_cancelled_source_closes_async_generator():
    closed = asyncio.Event()

    async def numbers():
        try:
            for i in range(1000):
                await asyncio.sleep(0.001)
                yield i
        finally:
            closed.set()

    source = sc.Source.from_iterable(numbers())
    sink = sc.StreamProcessor().start(source)

    received = []
    async for item in sink:
        received.append(item)
        if len(received) == 3:
            break

    sink.cancel()
    await asyncio.wait_for(sink.tasks.wait(), timeout=2)
    await asyncio.wait_for(source._feeder, timeout=2)

    # Closed by the feeder itself, not later by the loop's finalizer
    assert closed.is_set()
    assert received == [0, 1, 2]
