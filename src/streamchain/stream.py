import asyncio
import logging
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    Generic,
    Iterable,
    List,
    Optional,
    TypeVar,
    Union,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ItemEvent(Generic[T]):
    """A chunk delivered through a stream."""

    def __init__(self, item: T):
        self.item = item

    def __repr__(self):
        return f"ItemEvent({self.item!r})"


class EndEvent:
    """Sentinel signalling that no more chunks will be delivered."""

    def __repr__(self):
        return "EndEvent()"


class ErrorEvent:
    """Terminal event carrying the failure that stopped the producer."""

    def __init__(self, error: BaseException):
        self.error = error

    def __repr__(self):
        return f"ErrorEvent({self.error!r})"


StreamEvent = Union[ItemEvent[T], EndEvent, ErrorEvent]


def _check_maxsize(maxsize: int) -> int:
    if not isinstance(maxsize, int) or isinstance(maxsize, bool):
        raise TypeError(f"maxsize must be an integer, got {type(maxsize).__name__}")
    if maxsize < 0:
        raise ValueError(f"maxsize must be >= 0, got {maxsize}")
    return maxsize


class Stream(Generic[T]):
    """Async queue-based channel connecting a producer to a single consumer.

    The producer writes chunks with ``put()`` and terminates the stream with
    either ``end()`` or ``fail()``. The consumer reads with ``async for`` (the
    carried error is raised, the end stops iteration) or with ``events()`` to
    observe the raw events.

    Backpressure comes from the bounded queue: ``put()`` blocks while
    ``maxsize`` chunks are waiting, so a producer never runs further ahead of
    its consumer than the buffer allows. ``maxsize=0`` makes the buffer
    unbounded.

    Stream States:
    - ended: producer has signalled end or failure
    - consumed: consumer has received the terminal event
    - cancelled: consumer has detached; further puts are dropped

    Example:
        >>> stream = Stream[int]()
        >>> async def produce():
        ...     await stream.put(42)
        ...     await stream.end()
        >>> task = asyncio.create_task(produce())
        >>> async for item in stream:
        ...     print(item)  # 42
    """

    def __init__(self, maxsize: int = 1, *, name: Optional[str] = None):
        """Initialize a new Stream.

        Args:
            maxsize: Number of chunks buffered before ``put()`` blocks (0 = unbounded)
            name: Label used in logs and reprs
        """
        self.maxsize = _check_maxsize(maxsize)
        self.name = name or "stream"
        self.queue: asyncio.Queue = asyncio.Queue(maxsize)
        self.ended = False  # True once the producer has signalled end or failure
        self.consumed = False  # True once the consumer has read the terminal event
        self._cancelled = False
        self._claimed = False
        self._error: Optional[BaseException] = None
        self._read_lock = asyncio.Lock()

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.name!r} ended={self.ended} consumed={self.consumed}>"

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def is_cancelled(self) -> bool:
        """Check if the consumer has detached from this stream."""
        return self._cancelled

    def claim(self) -> "Stream[T]":
        """Reserve the stream as the input of a single chain.

        A stream has one queue, so two chains reading it would split the
        chunks between them. Share input through a Source instead.

        Raises:
            ValueError: If a chain already reads from this stream
        """
        if self._claimed:
            raise ValueError(
                f"{self.name} already feeds a chain; use a Source or start_multiple() to share it"
            )

        self._claimed = True
        return self

    def cancel(self):
        """Detach the consumer: buffered chunks are dropped and later writes ignored."""
        if self._cancelled:
            return

        self._cancelled = True
        self._discard_pending()
        logger.debug("%s cancelled by its consumer", self.name)

    def _discard_pending(self):
        # Freeing the queue also wakes a producer blocked in put()
        while not self.queue.empty():
            self.queue.get_nowait()

    async def put(self, item: T):
        """Write a chunk, waiting while the buffer is full.

        Raises:
            ValueError: If the stream has already ended
        """
        if self.ended:
            raise ValueError("Stream already ended")

        if self._cancelled:
            return  # Silently drop chunks nobody will read

        await self.queue.put(ItemEvent(item))

    async def end(self):
        """Signal that no more chunks will be written.

        The end event is queued behind the chunks already buffered.

        Raises:
            ValueError: If the stream has already ended
        """
        if self.ended:
            raise ValueError("Stream already ended")

        self.ended = True
        if self._cancelled:
            return

        await self.queue.put(EndEvent())

    def fail(self, error: BaseException):
        """Terminate the stream with an error.

        Buffered chunks are discarded so the consumer sees the error next.

        Raises:
            ValueError: If the stream has already ended
        """
        if self.ended:
            raise ValueError("Stream already ended")

        self.ended = True
        self._error = error
        if self._cancelled:
            return

        self._discard_pending()
        self.queue.put_nowait(ErrorEvent(error))

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        event = await self._next_event()

        if isinstance(event, ItemEvent):
            return event.item
        if isinstance(event, ErrorEvent):
            raise event.error

        raise StopAsyncIteration

    async def events(self) -> AsyncIterator[StreamEvent[T]]:
        """Yield raw events, finishing with the terminal EndEvent or ErrorEvent."""
        while True:
            event = await self._next_event()
            yield event

            if not isinstance(event, ItemEvent):
                return

    async def _next_event(self) -> StreamEvent[T]:
        async with self._read_lock:
            if self.consumed or self._cancelled:
                if self._error is not None and not self._cancelled:
                    return ErrorEvent(self._error)
                return EndEvent()

            event = await self.queue.get()

            if not isinstance(event, ItemEvent):
                self.consumed = True

            self._observe(event)
            return event

    def _observe(self, event: StreamEvent[T]):
        """Hook called for every event handed to the consumer."""
        pass


class Source(Generic[T]):
    """Push-based producer that delivers every chunk to each attached stream.

    A Source is the entry point of a chain. Several chains (or several
    branches of one chain) can attach to the same source; each receives a
    copy of every chunk. Writing waits on every attached stream in turn, so
    the slowest bounded consumer sets the pace. Streams whose consumer has
    cancelled are skipped.

    Sources built with ``from_iterable()`` feed themselves: a background task
    starts iterating the data as soon as the first stream attaches, and stops
    early once every attached consumer has cancelled.

    Example:
        >>> source = Source.from_iterable([1, 2, 3])
        >>> evens, odds = await asyncio.gather(
        ...     StreamProcessor().filter(lambda x: x % 2 == 0).collect(source),
        ...     StreamProcessor().filter(lambda x: x % 2 == 1).collect(source),
        ... )
    """

    def __init__(self, *, name: Optional[str] = None):
        """Initialize a new Source.

        Args:
            name: Label used in logs and in the names of attached streams
        """
        self.name = name or "source"
        self.ended = False
        self.streams: List[Stream[T]] = []
        self._error: Optional[BaseException] = None
        self._data: Union[Iterable[T], AsyncIterable[T], None] = None
        self._feeder: Optional[asyncio.Task] = None

    def __repr__(self):
        return f"<Source {self.name!r} streams={len(self.streams)} ended={self.ended}>"

    @classmethod
    def from_iterable(
        cls,
        data: Union[Iterable[T], AsyncIterable[T]],
        *,
        name: Optional[str] = None,
    ) -> "Source[T]":
        """Create a source that feeds itself from a sync or async iterable.

        Args:
            data: Items to deliver, iterated once
            name: Label used in logs

        Returns:
            A new Source that starts feeding on first attach
        """
        if not hasattr(data, "__aiter__") and not hasattr(data, "__iter__"):
            raise TypeError(f"data must be iterable, got {type(data).__name__}")

        source = cls(name=name)
        source._data = data
        return source

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def attach(self, maxsize: int = 1) -> Stream[T]:
        """Create a new stream receiving every chunk pushed from now on.

        Args:
            maxsize: Buffer size of the new stream (0 = unbounded)

        Returns:
            The attached stream

        Raises:
            ValueError: If the source has already ended
        """
        return self.connect(Stream[T](maxsize, name=f"{self.name}[{len(self.streams)}]"))

    def connect(self, stream: Stream[T]) -> Stream[T]:
        """Attach an existing stream (for instance a sink) to this source."""
        if self.ended:
            raise ValueError("Source already ended")

        self.streams.append(stream)

        if self._data is not None and self._feeder is None:
            self._feeder = asyncio.get_running_loop().create_task(
                self._feed(self._data), name=f"{self.name}-feeder"
            )

        return stream

    def is_cancelled(self) -> bool:
        """Check if every attached consumer has stopped reading."""
        return bool(self.streams) and all(s.is_cancelled() for s in self.streams)

    async def put(self, item: T):
        """Deliver a chunk to every attached stream."""
        if self.ended:
            raise ValueError("Source already ended")

        for stream in self.streams:
            await stream.put(item)

    async def end(self):
        """Signal end of input to every attached stream."""
        if self.ended:
            raise ValueError("Source already ended")

        self.ended = True
        for stream in self.streams:
            await stream.end()

    def fail(self, error: BaseException):
        """Fail every attached stream with ``error``."""
        if self.ended:
            raise ValueError("Source already ended")

        self.ended = True
        self._error = error
        for stream in self.streams:
            stream.fail(error)

    async def _feed(self, data: Union[Iterable[T], AsyncIterable[T]]):
        try:
            if hasattr(data, "__aiter__"):
                iterator = data.__aiter__()
                async for item in iterator:
                    if self.is_cancelled():
                        # Run the generator's cleanup now rather than at GC
                        if hasattr(iterator, "aclose"):
                            await iterator.aclose()
                        break
                    await self.put(item)
            else:
                for item in data:
                    if self.is_cancelled():
                        break
                    await self.put(item)

        except Exception as error:
            logger.debug("%s failed while producing: %r", self.name, error)
            self.fail(error)
            return

        if self.is_cancelled():
            logger.debug("%s stopped early, every consumer cancelled", self.name)
            self.ended = True
            return

        await self.end()


def as_stream(source: Any, maxsize: int = 1) -> Stream[Any]:
    """Turn anything accepted as a chain source into the chain's head stream.

    Args:
        source: A Source, a Stream, an async iterable or an iterable
        maxsize: Buffer size used when a new stream is attached

    Returns:
        The head stream to read from

    Raises:
        TypeError: If the source is none of the accepted kinds
        ValueError: If the source is a Stream already feeding another chain
    """
    if isinstance(source, Stream):
        return source.claim()

    if isinstance(source, Source):
        return source.attach(maxsize)

    if hasattr(source, "__aiter__") or hasattr(source, "__iter__"):
        return Source.from_iterable(source).attach(maxsize)

    raise TypeError(
        f"source must be a Source, a Stream or an iterable, got {type(source).__name__}"
    )
