"""Error types raised by streamchain pipelines."""

from typing import Optional


class StreamChainError(Exception):
    """Base class for every error raised by streamchain."""


class PipelineError(StreamChainError):
    """Failure travelling through a chain towards its sinks."""

    def __init__(
        self,
        message: str,
        original_error: BaseException,
        step_name: Optional[str] = None,
        item_index: Optional[int] = None,
    ):
        """Create a pipeline error with contextual metadata.

        Args:
            message: Human-readable description of the failure.
            original_error: The original exception that was raised.
            step_name: Optional name of the stage where the error occurred.
            item_index: Optional index of the chunk being processed.

        """
        self.original_error = original_error
        self.step_name = step_name
        self.item_index = item_index
        super().__init__(f"{message}: {original_error}")


class TransformError(PipelineError):
    """A caller-supplied transform function raised or its awaitable failed."""


class UpstreamError(PipelineError):
    """The source feeding a chain failed."""


class PrematureQueryError(StreamChainError, RuntimeError):
    """A sink was queried before it finished receiving."""
