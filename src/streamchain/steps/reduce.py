import logging
from typing import Any, Awaitable, Callable, Union

from streamchain.base import StageContext, Step, T, U, resolve
from streamchain.processors import Output, StageProcessor
from streamchain.stream import Stream

logger = logging.getLogger(__name__)

Reducer = Callable[[U, T], Union[Awaitable[U], U]]


class _NotProvided:
    """Sentinel to indicate no initial value was provided.

    This is used to distinguish between an explicit None initial value
    and no initial value being provided at all.
    """

    def __repr__(self):
        return "NOT_PROVIDED"


NOT_PROVIDED = _NotProvided()


class _ReduceProcessor(StageProcessor[T, U]):
    """Processor folding every chunk into one accumulator.

    The accumulator belongs to this processor, hence to a single chain run.
    It is emitted as the only output chunk when the input ends.
    """

    def __init__(
        self,
        input_stream: Stream[T],
        output_stream: Output[U],
        context: StageContext,
        reducer: Callable[[Any, T], Any],
        initial: Union[U, _NotProvided],
    ):
        """Initialize the reduce processor.

        Args:
            input_stream: Stream to read items from
            output_stream: Stream to write the reduced result to
            context: Name and position of the stage
            reducer: Binary function that takes (accumulator, item) and returns new accumulator
            initial: Initial value for the accumulator, or NOT_PROVIDED
        """
        super().__init__(input_stream, output_stream, context)
        self.reducer = reducer
        self.accumulator: Union[U, _NotProvided] = initial

    async def _process_item(self, item: T, index: int):
        if self.accumulator is NOT_PROVIDED:
            # First chunk seeds the accumulator without calling the reducer
            self.accumulator = item
            return

        self.accumulator = await resolve(self.reducer(self.accumulator, item))

    async def _flush(self):
        if self.accumulator is NOT_PROVIDED:
            logger.debug("%s: empty input and no initial value, emitting nothing", self.name)
            return

        await self.output_stream.put(self.accumulator)


class Reduce(Step[T, U]):
    """Pipeline step that reduces all chunks to a single accumulated value.

    The step applies ``reducer(accumulator, item)`` cumulatively, left to
    right, as the chunks arrive. When no initial value is given the first
    chunk becomes the accumulator. At end of input the accumulator is
    emitted as one chunk, so collecting a reduce yields a one-item list.

    An empty input without initial value emits no chunk at all.

    Example:
        >>> await StreamProcessor().reduce(lambda acc, x: acc + x).collect([10, 20, 30])
        [60]

        >>> await StreamProcessor().reduce(lambda acc, x: acc + [x * 2], []).collect([1, 2])
        [[2, 4]]

        >>> await StreamProcessor().reduce(lambda acc, x: acc + x).collect([])
        []
    """

    name = "reduce"

    def __init__(
        self,
        reducer: Reducer[U, T],
        initial: Union[U, _NotProvided] = NOT_PROVIDED,
    ):
        """Initialize the Reduce step.

        Args:
            reducer: Binary function that takes (accumulator, item) and returns new accumulator
            initial: Initial value for the accumulator. If not provided, the first item is used.
        """
        if not callable(reducer):
            raise TypeError(f"reducer must be callable, got {type(reducer).__name__}")
        self.reducer = reducer
        self.initial = initial

    def _build_processor(
        self, input_stream: Stream[T], output_stream: Output[U], context: StageContext
    ) -> _ReduceProcessor[T, U]:
        return _ReduceProcessor(input_stream, output_stream, context, self.reducer, self.initial)

    def __repr__(self):
        return f"Reduce({self.reducer!r}, initial={self.initial!r})"
