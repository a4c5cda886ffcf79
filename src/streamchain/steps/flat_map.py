from typing import Any, AsyncIterable, Awaitable, Callable, Iterable, Optional, Union

from streamchain.base import StageContext, Step, T, U, bind_arguments, resolve
from streamchain.processors import Output, StageProcessor
from streamchain.stream import Stream

FlatMapper = Callable[
    ...,
    Union[Iterable[U], AsyncIterable[U], Awaitable[Iterable[U]], Awaitable[AsyncIterable[U]]],
]


def _itself(item: Any) -> Any:
    return item


class _FlatMapProcessor(StageProcessor[T, U]):
    """Processor that applies a function returning iterables and flattens the results.

    Every element of the returned iterable is written downstream, in order,
    before the next input chunk is read.
    """

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
        results = await resolve(self.mapper(item, index, self.context))

        if hasattr(results, "__aiter__"):
            async for result in results:
                await self.output_stream.put(result)
        else:
            for result in results:
                await self.output_stream.put(result)


class FlatMap(Step[T, U]):
    """Pipeline step that expands each chunk into zero or more chunks.

    ``mapper(item, index, context)`` returns an iterable, an async iterable,
    or an awaitable resolving to either. Without a mapper the chunk itself
    is taken as the iterable to emit, which flattens a stream of lists.

    Example:
        >>> await StreamProcessor().flat_map(str.split).collect(["hello world", "hi"])
        ['hello', 'world', 'hi']

        >>> await StreamProcessor().flat_map().collect([[1, 2], [], [3]])
        [1, 2, 3]
    """

    name = "flat_map"

    def __init__(self, mapper: Optional[FlatMapper[U]] = None):
        """Initialize the FlatMap step.

        Args:
            mapper: Function returning the items to emit for each chunk
        """
        if mapper is not None and not callable(mapper):
            raise TypeError(f"mapper must be callable, got {type(mapper).__name__}")
        self.mapper = mapper if mapper is not None else _itself

    def _build_processor(
        self, input_stream: Stream[T], output_stream: Output[U], context: StageContext
    ) -> _FlatMapProcessor[T, U]:
        return _FlatMapProcessor(
            input_stream, output_stream, context, bind_arguments(self.mapper, 3)
        )

    def __repr__(self):
        return f"FlatMap({self.mapper!r})"
