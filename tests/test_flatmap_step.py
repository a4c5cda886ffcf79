import asyncio

import streamchain as sc


async def test_flatmap_operation():
    """Test flat_map operation"""
    result = await sc.StreamProcessor().flat_map(lambda x: [x, x * 2]).collect([1, 2, 3])
    assert result == [1, 2, 2, 4, 3, 6]


async def test_default_flat_map_flattens_chunks():
    result = await sc.StreamProcessor().flat_map().collect([[1, 2], [], (3,), range(4, 6)])
    assert result == [1, 2, 3, 4, 5]


async def test_flat_map_with_builtin():
    result = await sc.StreamProcessor().flat_map(str.split).collect(["hello world", "python rocks"])
    assert result == ["hello", "world", "python", "rocks"]


async def test_flat_map_with_async_generator():
    async def expand(n):
        for i in range(n):
            await asyncio.sleep(0)
            yield f"{n}.{i}"

    result = await sc.StreamProcessor().flat_map(expand).collect([2, 0, 1])
    assert result == ["2.0", "2.1", "1.0"]


async def test_flat_map_receives_index():
    result = await sc.StreamProcessor().flat_map(lambda item, index: [index] * item).collect([1, 2, 3])
    assert result == [0, 1, 1, 2, 2, 2]


async def test_flat_map_of_non_iterable_fails():
    try:
        await sc.StreamProcessor().flat_map().collect([1])
    except sc.TransformError as error:
        assert isinstance(error.original_error, TypeError)
        assert error.step_name == "flat_map"
    else:
        raise AssertionError("flat_map of an int should fail")
