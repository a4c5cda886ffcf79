import inspect
from abc import ABC
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

from streamchain.stream import Stream

if TYPE_CHECKING:
    from streamchain.processors import Output, StageProcessor

# Type variables
T = TypeVar("T")
U = TypeVar("U")
K = TypeVar("K")


@dataclass(frozen=True)
class StageContext:
    """Where a stage sits, handed to transform functions that ask for it.

    Attributes:
        name: Name of the stage ("map", "filter", ...)
        position: Position of the stage in its chain, starting at 0
        chain: Name of the StreamProcessor the stage belongs to
    """

    name: str
    position: int
    chain: str


async def resolve(value: Any) -> Any:
    """Await ``value`` if a transform function returned an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


def bind_arguments(func: Callable[..., Any], limit: int) -> Callable[..., Any]:
    """Adapt ``func`` to be called with up to ``limit`` positional arguments.

    Stages call transform functions with a fixed argument list (for instance
    ``item, index, context`` for map). Python functions receive as many
    leading arguments as they have positional parameters, defaulted ones
    included, so ``lambda x: x * 2`` works as well as
    ``def mapper(item, index=None, context=None)``.

    Builtins and classes only receive their required positional arguments:
    their optional parameters (``sep`` for ``str.split``, ``ndigits`` for
    ``round``) mean something else entirely. Callables whose signature cannot
    be inspected receive the item only.
    """
    # Only Python-level functions opt into index/context through defaults
    with_defaults = inspect.isfunction(func) or inspect.ismethod(func)

    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        count = 1
    else:
        count = 0
        for parameter in signature.parameters.values():
            if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
                count = limit
                break
            if parameter.kind not in (
                inspect.Parameter.POSITIONAL_ONLY,
                inspect.Parameter.POSITIONAL_OR_KEYWORD,
            ):
                continue
            if with_defaults or parameter.default is inspect.Parameter.empty:
                count += 1

    count = max(1, min(count, limit))

    def call(*args: Any) -> Any:
        return func(*args[:count])

    return call


class Step(ABC, Generic[T, U]):
    """Immutable description of one stage of a chain.

    A Step holds the user function and its configuration but no runtime
    state. Each time a chain is started every step builds a fresh
    StageProcessor, which owns the mutable state of the stage (item counter,
    accumulator) for that run only. Steps can therefore be shared between
    StreamProcessor instances without any cross-talk.

    Subclasses must implement _build_processor to define their processing logic.
    """

    name: str = "step"

    def build_processor(
        self, input_stream: Stream[T], output_stream: "Output[U]", context: StageContext
    ) -> "StageProcessor[T, U]":
        """Create the processor running this step for one chain run.

        Args:
            input_stream: Stream to read chunks from
            output_stream: Stream (or broadcasting Source) to write results to
            context: Position of the stage in its chain

        Returns:
            A processor ready to be driven with process_stream()
        """
        return self._build_processor(input_stream, output_stream, context)

    def _build_processor(
        self, input_stream: Stream[T], output_stream: "Output[U]", context: StageContext
    ) -> "StageProcessor[T, U]":
        raise NotImplementedError

    def __repr__(self):
        return f"{self.__class__.__name__}()"
