import asyncio

import streamchain as sc


async def test_reduce_operation():
    """Test reduce operation"""
    result = await sc.StreamProcessor().reduce(lambda acc, x: acc + x, 0).collect(range(5))
    assert result == [10]  # 0+1+2+3+4


async def test_first_chunk_seeds_accumulator():
    calls = []

    def reducer(acc, x):
        calls.append((acc, x))
        return acc + x

    result = await sc.StreamProcessor().reduce(reducer).collect([10, 20, 30])

    assert result == [60]
    assert calls == [(10, 20), (30, 30)]


async def test_initial_value_is_used():
    result = await sc.StreamProcessor().reduce(lambda acc, x: acc + x, 100).collect(range(1, 6))
    assert result == [115]


async def test_none_is_a_valid_initial_value():
    result = await sc.StreamProcessor().reduce(lambda acc, x: x if acc is None else acc, None).collect([4, 5])
    assert result == [4]


async def test_empty_input_without_initial_emits_nothing():
    result = await sc.StreamProcessor().reduce(lambda acc, x: acc + x).collect([])
    assert result == []


async def test_empty_input_with_initial_emits_initial():
    result = await sc.StreamProcessor().reduce(lambda acc, x: acc + x, 0).collect([])
    assert result == [0]


async def test_async_reducer():
    async def accumulate(acc, item):
        await asyncio.sleep(0.001)
        return acc + item**2

    result = await sc.StreamProcessor().reduce(accumulate, 0).collect(range(5))
    assert result == [30]


async def test_reduce_then_map():
    result = await (
        sc.StreamProcessor()
        .reduce(lambda acc, word: acc + " " + word)
        .map(str.upper)
        .collect(["hello", "stream", "world"])
    )
    assert result == ["HELLO STREAM WORLD"]
