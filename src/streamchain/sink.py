"""Terminal pass-through stream that remembers what it has seen."""

from enum import Enum
from typing import TYPE_CHECKING, Optional

from streamchain.errors import PrematureQueryError
from streamchain.stream import EndEvent, ItemEvent, Stream, StreamEvent, T

if TYPE_CHECKING:
    from streamchain.tasks import TaskSet


class SinkState(Enum):
    """Lifecycle of a StatusSink."""

    RECEIVING = "receiving"  # Initial; chunks may still arrive
    FINISHED = "finished"  # End of input delivered to the consumer


class StatusSink(Stream[T]):
    """Stream at the tail of a started chain.

    Every chunk is passed through unchanged. While the consumer reads, the
    sink records whether any chunk went by and whether the end of input was
    delivered, which makes ``was_empty()`` answerable once the sink is
    finished. A failed chain leaves the sink in ``RECEIVING``.

    Attributes:
        state: Current SinkState
        tasks: Tasks driving the chain that feeds this sink
    """

    def __init__(
        self,
        maxsize: int = 1,
        *,
        name: Optional[str] = None,
        tasks: Optional["TaskSet"] = None,
    ):
        super().__init__(maxsize, name=name or "sink")
        self.state = SinkState.RECEIVING
        self.tasks = tasks
        self._received_any = False

    @property
    def received_any(self) -> bool:
        return self._received_any

    @property
    def finished(self) -> bool:
        return self.state is SinkState.FINISHED

    def _observe(self, event: StreamEvent[T]):
        if isinstance(event, ItemEvent):
            self._received_any = True
        elif isinstance(event, EndEvent) and self.state is SinkState.RECEIVING:
            self.state = SinkState.FINISHED

    def was_empty(self) -> bool:
        """Tell whether the chain delivered no chunk at all.

        Returns:
            True if the sink finished without seeing a single chunk

        Raises:
            PrematureQueryError: If the sink has not finished yet
        """
        if self.state is not SinkState.FINISHED:
            raise PrematureQueryError(
                "It's not possible to check if stream was empty before it finished transferring."
            )

        return not self._received_any
