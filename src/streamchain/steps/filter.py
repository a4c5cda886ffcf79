from typing import Any, Awaitable, Callable, Union

from streamchain.base import StageContext, Step, T, bind_arguments, resolve
from streamchain.processors import Output, StageProcessor
from streamchain.stream import Stream

Predicate = Callable[..., Union[Awaitable[Any], Any]]


class _FilterProcessor(StageProcessor[T, T]):
    """Processor that filters items based on a predicate function.

    Only items for which the predicate is truthy are passed through
    to the output stream. Items that don't match are dropped.
    """

    def __init__(
        self,
        input_stream: Stream[T],
        output_stream: Output[T],
        context: StageContext,
        predicate: Callable[..., Any],
    ):
        """Initialize the filter processor.

        Args:
            input_stream: Stream to read items from
            output_stream: Stream to write kept items to
            context: Name and position of the stage
            predicate: Function deciding whether an item is kept
        """
        super().__init__(input_stream, output_stream, context)
        self.predicate = predicate

    async def _process_item(self, item: T, index: int):
        if await resolve(self.predicate(item, self.context)):
            await self.output_stream.put(item)


class Filter(Step[T, T]):
    """Pipeline step that keeps the chunks satisfying a predicate.

    The predicate is called as ``predicate(item, context)`` (or with the item
    only, if that is all it accepts) and can be synchronous or asynchronous.
    Dropped chunks are neither forwarded nor buffered.

    Example:
        >>> await StreamProcessor().filter(lambda n: n > 10).collect([10, 20, 30])
        [20, 30]
    """

    name = "filter"

    def __init__(self, predicate: Predicate):
        """Initialize the Filter step.

        Args:
            predicate: Function returning a truthy value for chunks to keep
        """
        if not callable(predicate):
            raise TypeError(f"predicate must be callable, got {type(predicate).__name__}")
        self.predicate = predicate

    def _build_processor(
        self, input_stream: Stream[T], output_stream: Output[T], context: StageContext
    ) -> _FilterProcessor[T]:
        return _FilterProcessor(
            input_stream, output_stream, context, bind_arguments(self.predicate, 2)
        )

    def __repr__(self):
        return f"Filter({self.predicate!r})"
