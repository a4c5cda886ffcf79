from typing import Any, Awaitable, Callable, Union

from streamchain.base import StageContext, Step, T, U, bind_arguments, resolve
from streamchain.processors import Output, StageProcessor
from streamchain.stream import Stream

Mapper = Callable[..., Union[Awaitable[U], U]]


class _MapProcessor(StageProcessor[T, U]):
    """Map processor."""

    def __init__(
        self,
        input_stream: Stream[T],
        output_stream: Output[U],
        context: StageContext,
        mapper: Callable[..., Any],
    ):
        super().__init__(input_stream, output_stream, context)
        self.mapper = mapper

    async def _process_item(self, item: T, index: int):
        result = await resolve(self.mapper(item, index, self.context))
        await self.output_stream.put(result)


class Map(Step[T, U]):
    """Transform each chunk with ``mapper(item, index, context)``.

    The mapper may take fewer arguments (``lambda x: x * 2``) and may be a
    coroutine function; the stage waits for each result before pulling the
    next chunk, so output order matches input order.
    """

    name = "map"

    def __init__(self, mapper: Mapper[U]):
        if not callable(mapper):
            raise TypeError(f"mapper must be callable, got {type(mapper).__name__}")
        self.mapper = mapper

    def _build_processor(
        self, input_stream: Stream[T], output_stream: Output[U], context: StageContext
    ) -> _MapProcessor[T, U]:
        return _MapProcessor(
            input_stream, output_stream, context, bind_arguments(self.mapper, 3)
        )

    def __repr__(self):
        return f"Map({self.mapper!r})"
