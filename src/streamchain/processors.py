import asyncio
import logging
from abc import ABC
from typing import Generic, TypeVar, Union

from streamchain.base import StageContext
from streamchain.errors import PipelineError, TransformError, UpstreamError
from streamchain.stream import Source, Stream

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

Output = Union[Stream[U], Source[U]]


class StageProcessor(ABC, Generic[T, U]):
    """Runtime of one stage: pulls chunks from its input, writes to its output.

    Chunks are processed strictly one at a time. The next chunk is only read
    once ``_process_item()`` (including every awaitable it waits on) has
    returned, so output order always matches input order and a slow stage
    throttles everything upstream of it.

    The processor also carries failures and cancellation along the chain:
    - an error read from the input is forwarded to the output unchanged,
      wrapped in UpstreamError first if it did not come from a chain
    - a failing transform becomes a TransformError on the output
    - either way the input is cancelled, so upstream producers stop
    - when the output's consumer cancels, the input is cancelled too

    Attributes:
        input_stream: Stream to read chunks from
        output_stream: Stream or broadcasting Source to write results to
        context: Name and position of the stage
        index: Number of chunks handled so far
    """

    input_stream: Stream[T]
    output_stream: Output[U]

    def __init__(self, input_stream: Stream[T], output_stream: Output[U], context: StageContext):
        """Initialize the processor with input and output streams.

        Args:
            input_stream: Stream to read chunks from
            output_stream: Stream or Source to write results to
            context: Name and position of the stage
        """
        self.input_stream = input_stream
        self.output_stream = output_stream
        self.context = context
        self.index = 0

    @property
    def name(self) -> str:
        return f"{self.context.chain}.{self.context.name}[{self.context.position}]"

    async def process_stream(self):
        """Drive the stage until its input ends, fails or its output is cancelled."""
        try:
            async for item in self.input_stream:
                await self._handle_item(item)

                if self.output_stream.is_cancelled():
                    logger.debug("%s: output cancelled, cancelling input", self.name)
                    self.input_stream.cancel()
                    return

            await self._handle_flush()
            if not self.output_stream.is_cancelled():
                await self.output_stream.end()
            logger.debug("%s: finished after %d items", self.name, self.index)

        except PipelineError as error:
            self._fail(error)
        except asyncio.CancelledError:
            self.input_stream.cancel()
            raise
        except Exception as error:
            self._fail(
                UpstreamError(f"Upstream of {self.name} failed", error, self.context.name)
            )

    def _fail(self, error: PipelineError):
        logger.debug("%s: failing chain with %r", self.name, error)
        self.input_stream.cancel()

        if not self.output_stream.ended:
            self.output_stream.fail(error)

    async def _handle_item(self, item: T):
        index = self.index
        self.index += 1

        try:
            await self._process_item(item, index)
        except Exception as error:
            raise TransformError(
                f"{self.context.name} failed on item {index}",
                error,
                self.context.name,
                index,
            ) from error

    async def _handle_flush(self):
        try:
            await self._flush()
        except Exception as error:
            raise TransformError(
                f"{self.context.name} failed at end of input", error, self.context.name
            ) from error

    async def _process_item(self, item: T, index: int):
        """Process one chunk and write any results to the output stream.

        Subclasses must implement this method to define their specific
        processing logic.

        Args:
            item: The chunk to process
            index: Position of the chunk among those seen by this stage

        Raises:
            NotImplementedError: Must be implemented by subclasses
        """
        raise NotImplementedError

    async def _flush(self):
        """Emit whatever the stage still holds once the input has ended."""
        pass


class PassThroughProcessor(StageProcessor[T, T]):
    """Forwards every chunk unchanged; connects a chain's tail to its sinks."""

    async def _process_item(self, item: T, index: int):
        await self.output_stream.put(item)
