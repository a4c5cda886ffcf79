import logging
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Iterable,
    List,
    Optional,
    Tuple,
    TypeVar,
    Union,
)

from streamchain.base import K, StageContext, Step, T, U, resolve
from streamchain.errors import TransformError
from streamchain.processors import Output, PassThroughProcessor
from streamchain.sink import StatusSink
from streamchain.steps import Filter, FlatMap, Map, Reduce
from streamchain.steps.flat_map import FlatMapper
from streamchain.steps.filter import Predicate
from streamchain.steps.map import Mapper
from streamchain.steps.reduce import NOT_PROVIDED, Reducer, _NotProvided
from streamchain.stream import Source, Stream, as_stream
from streamchain.tasks import TaskSet

logger = logging.getLogger(__name__)

R = TypeVar("R")


def _check_size(value: int, argument: str, minimum: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{argument} must be an integer, got {type(value).__name__}")
    if value < minimum:
        raise ValueError(f"{argument} must be >= {minimum}, got {value}")
    return value


class StreamProcessor(Generic[T]):
    """Fluent builder for a chain of stages over a stream of chunks.

    A StreamProcessor is an immutable, ordered tuple of steps. Every
    chain-extending call (``map``, ``flat_map``, ``filter``, ``reduce``,
    ``then``) returns a new processor; processors sharing a prefix never
    alias each other's stages.

    Nothing runs until the chain is consumed by one of:
    - ``start(source)``: returns a live StatusSink to read from
    - ``start_multiple(source, n)``: returns n sinks, each receiving every chunk
    - ``await collect(source)``: returns every chunk in a list
    - ``await group_by(source, key_mapper)``: returns chunks grouped by key

    Each of those builds a fresh run of the chain: new channels, new stage
    processors and therefore new per-stage state. Starting the same
    processor twice gives two independent runs.

    Stages handle one chunk at a time and the channels between them are
    bounded, so a slow or asynchronous stage throttles the source. The first
    error anywhere in the chain stops it and reaches every sink.

    Example:
        >>> total = await (
        ...     StreamProcessor()
        ...     .filter(lambda person: person["country"] == "BR")
        ...     .map(fetch_age)  # async def fetch_age(person): ...
        ...     .reduce(lambda acc, age: acc + age)
        ...     .collect(people)
        ... )

    Attributes:
        name: Label used in logs, task names and channel names
        buffer_size: Capacity of each channel between stages
    """

    def __init__(
        self,
        steps: Iterable[Step[Any, Any]] = (),
        *,
        name: Optional[str] = None,
        buffer_size: int = 1,
    ):
        """Initialize a new StreamProcessor.

        Args:
            steps: Steps to run in sequence, empty by default
            name: Label for logs and tasks
            buffer_size: Chunks buffered between two stages (>= 1)
        """
        steps = tuple(steps)
        for step in steps:
            if not isinstance(step, Step):
                raise TypeError(f"steps must contain Step instances, got {type(step).__name__}")
        if name is not None and not isinstance(name, str):
            raise TypeError(f"name must be a string, got {type(name).__name__}")

        self._steps: Tuple[Step[Any, Any], ...] = steps
        self.name = name or "stream-processor"
        self.buffer_size = _check_size(buffer_size, "buffer_size", 1)

    def __repr__(self):
        return f"StreamProcessor({list(self._steps)!r}, name={self.name!r})"

    def __len__(self) -> int:
        return len(self._steps)

    @property
    def steps(self) -> Tuple[Step[Any, Any], ...]:
        return self._steps

    def then(self, step: Step[T, U]) -> "StreamProcessor[U]":
        """Return a new processor with ``step`` appended to the chain."""
        if not isinstance(step, Step):
            raise TypeError(f"step must be a Step, got {type(step).__name__}")

        return StreamProcessor(
            self._steps + (step,), name=self.name, buffer_size=self.buffer_size
        )

    def __or__(self, step: Step[T, U]) -> "StreamProcessor[U]":
        return self.then(step)

    def map(self, mapper: Mapper[U]) -> "StreamProcessor[U]":
        """Transform each chunk with ``mapper(item, index, context)``."""
        return self.then(Map(mapper))

    def flat_map(self, mapper: Optional[FlatMapper[U]] = None) -> "StreamProcessor[U]":
        """Emit every item of ``mapper(item, index, context)``; default flattens the chunk."""
        return self.then(FlatMap(mapper))

    def filter(self, predicate: Predicate) -> "StreamProcessor[T]":
        """Keep the chunks for which ``predicate(item, context)`` is truthy."""
        return self.then(Filter(predicate))

    def reduce(
        self,
        reducer: Reducer[U, T],
        initial: Union[U, _NotProvided] = NOT_PROVIDED,
    ) -> "StreamProcessor[U]":
        """Fold the chunks into one, emitted at end of input."""
        return self.then(Reduce(reducer, initial))

    def start(self, source: Any) -> StatusSink[T]:
        """Run the chain on ``source`` and return the sink at its tail.

        The sink is a Stream: iterate it with ``async for`` (the chain error,
        if any, is raised) or read raw events with ``sink.events()``. Once it
        is finished, ``sink.was_empty()`` tells whether anything came through.

        Must be called while an event loop is running.

        Args:
            source: A Source, a Stream, an async iterable or an iterable

        Returns:
            The live sink receiving the chain's output
        """
        tasks = TaskSet(self.name)
        sink = StatusSink[T](self.buffer_size, name=f"{self.name}.sink", tasks=tasks)
        self._launch(source, sink, tasks)
        logger.debug("Started %s with %d stages", self.name, len(self._steps))
        return sink

    def start_multiple(
        self, source: Any, quantity: int, *, branch_buffer_size: int = 0
    ) -> List[StatusSink[T]]:
        """Run the chain once and broadcast its output to ``quantity`` sinks.

        Every sink receives every chunk. With the default unbounded branch
        buffers a slow consumer only grows its own backlog and never holds
        back the other branches. A positive ``branch_buffer_size`` bounds the
        branches, in which case the slowest one sets the pace for all.

        Args:
            source: A Source, a Stream, an async iterable or an iterable
            quantity: Number of sinks to create (>= 1)
            branch_buffer_size: Capacity of each branch (0 = unbounded)

        Returns:
            The list of sinks, all fed by the same run
        """
        _check_size(quantity, "quantity", 1)
        _check_size(branch_buffer_size, "branch_buffer_size", 0)

        tasks = TaskSet(self.name)
        hub = Source[T](name=f"{self.name}.fan-out")
        sinks = [
            hub.connect(
                StatusSink[T](branch_buffer_size, name=f"{self.name}.sink[{i}]", tasks=tasks)
            )
            for i in range(quantity)
        ]
        self._launch(source, hub, tasks)
        logger.debug(
            "Started %s with %d stages and %d sinks", self.name, len(self._steps), quantity
        )
        return sinks

    async def collect(self, source: Any) -> List[T]:
        """Run the chain and gather its output in arrival order.

        Args:
            source: A Source, a Stream, an async iterable or an iterable

        Returns:
            Every chunk reaching the tail

        Raises:
            PipelineError: On the first error anywhere in the chain
        """
        items: List[T] = []

        def append(item: T):
            items.append(item)

        return await self._collect_from_stream(source, append, lambda: items, "collect")

    async def group_by(
        self, source: Any, key_mapper: Callable[[T], Union[Awaitable[K], K]]
    ) -> Dict[K, List[T]]:
        """Run the chain and group its output by ``key_mapper(item)``.

        Keys appear in the order of their first occurrence; each list keeps
        the arrival order of its items.

        Args:
            source: A Source, a Stream, an async iterable or an iterable
            key_mapper: Function deriving the grouping key, sync or async

        Returns:
            Mapping from key to the chunks sharing it

        Raises:
            PipelineError: On the first error anywhere in the chain
        """
        if not callable(key_mapper):
            raise TypeError(f"key_mapper must be callable, got {type(key_mapper).__name__}")

        groups: Dict[K, List[T]] = {}

        async def add(item: T):
            key = await resolve(key_mapper(item))
            groups.setdefault(key, []).append(item)

        return await self._collect_from_stream(source, add, lambda: groups, "group_by")

    async def _collect_from_stream(
        self,
        source: Any,
        on_item: Callable[[T], Any],
        get_result: Callable[[], R],
        stage_name: str,
    ) -> R:
        sink = self.start(source)
        index = 0

        try:
            async for item in sink:
                try:
                    await resolve(on_item(item))
                except Exception as error:
                    raise TransformError(
                        f"{stage_name} failed on item {index}", error, stage_name, index
                    ) from error
                index += 1
        finally:
            if not sink.consumed:
                # Aggregation stopped early: tear the run down
                sink.cancel()
                sink.tasks.cancel()

        return get_result()

    def _launch(self, source: Any, output: Output[T], tasks: TaskSet):
        stream = as_stream(source, self.buffer_size)

        for position, step in enumerate(self._steps):
            context = StageContext(step.name, position, self.name)
            next_stream = Stream[Any](self.buffer_size, name=f"{self.name}.{step.name}[{position}]")
            processor = step.build_processor(stream, next_stream, context)
            tasks.spawn(processor.process_stream(), name=processor.name)
            stream = next_stream

        tail = PassThroughProcessor(
            stream, output, StageContext("tail", len(self._steps), self.name)
        )
        tasks.spawn(tail.process_stream(), name=tail.name)
