"""Tests for the status-tracking sink."""

import pytest

from streamchain import (
    EndEvent,
    ItemEvent,
    PrematureQueryError,
    SinkState,
    StreamProcessor,
    TransformError,
)


async def drain(sink):
    return [item async for item in sink]


async def test_was_empty_before_done_raises():
    sink = StreamProcessor().start([1, 2, 3])

    with pytest.raises(
        PrematureQueryError,
        match="It's not possible to check if stream was empty before it finished transferring.",
    ):
        sink.was_empty()

    assert await drain(sink) == [1, 2, 3]


async def test_was_empty_raises_while_chunks_arrive():
    sink = StreamProcessor().start([1, 2, 3])

    assert await sink.__anext__() == 1
    assert await sink.__anext__() == 2
    assert sink.received_any

    with pytest.raises(PrematureQueryError):
        sink.was_empty()

    await drain(sink)


async def test_was_empty_false_if_items_were_transferred():
    sink = StreamProcessor().start([1, 2, 3])
    await drain(sink)

    assert sink.state is SinkState.FINISHED
    assert sink.finished
    assert sink.was_empty() is False


async def test_was_empty_true_if_no_items_were_transferred():
    sink = StreamProcessor().start([])
    await drain(sink)

    assert sink.state is SinkState.FINISHED
    assert sink.was_empty() is True


async def test_was_empty_true_when_everything_is_filtered_out():
    sink = StreamProcessor().filter(lambda x: x > 100).start([1, 2, 3])
    await drain(sink)

    assert sink.was_empty() is True


async def test_sink_starts_receiving():
    sink = StreamProcessor().start([])

    assert sink.state is SinkState.RECEIVING
    assert not sink.received_any
    assert not sink.finished

    await drain(sink)


async def test_failed_chain_never_finishes_sink():
    def boom(x):
        raise ValueError("boom")

    sink = StreamProcessor().map(boom).start([1])

    with pytest.raises(TransformError):
        await drain(sink)

    assert sink.state is SinkState.RECEIVING
    with pytest.raises(PrematureQueryError):
        sink.was_empty()


async def test_raw_events():
    sink = StreamProcessor().map(lambda x: x * 10).start([1, 2])

    events = [event async for event in sink.events()]

    assert [type(event) for event in events] == [ItemEvent, ItemEvent, EndEvent]
    assert [event.item for event in events[:2]] == [10, 20]
    assert sink.was_empty() is False


async def test_sink_can_feed_another_processor():
    sink = StreamProcessor().map(lambda x: x + 1).start([1, 2, 3])

    result = await StreamProcessor().map(lambda x: x * 10).collect(sink)

    assert result == [20, 30, 40]
    assert sink.was_empty() is False


async def test_sink_tasks_finish():
    sink = StreamProcessor().map(str).start(range(3))
    await drain(sink)
    await sink.tasks.wait()

    assert sink.tasks.done
    assert len(sink.tasks) == 0
