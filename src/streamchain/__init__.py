"""
streamchain: chainable, backpressure-aware async stream pipelines

Build a chain of stages over a stream of chunks coming from an external
source, then either read its output live from a status-tracking sink or
aggregate it into a list, a grouped mapping or a single reduced value.

Key Features:
- Strict per-stage ordering: one chunk at a time, sync or async transforms
- Bounded channels between stages, so a slow stage throttles its source
- Errors anywhere in a chain reach every sink and every pending aggregate
- Fan-out: one run broadcast to several independent sinks

Quick Start:
    from streamchain import StreamProcessor

    # Aggregate
    doubled = await StreamProcessor().map(lambda x: x * 2).collect([1, 2, 3])

    # Live consumption
    sink = StreamProcessor().filter(is_valid).start(async_source)
    async for item in sink:
        handle(item)
    print(sink.was_empty())
"""

import logging

from .base import StageContext, Step
from .errors import (
    PipelineError,
    PrematureQueryError,
    StreamChainError,
    TransformError,
    UpstreamError,
)
from .sink import SinkState, StatusSink
from .steps import NOT_PROVIDED, Filter, FlatMap, Map, Reduce
from .stream import EndEvent, ErrorEvent, ItemEvent, Source, Stream
from .stream_processor import StreamProcessor

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "EndEvent",
    "ErrorEvent",
    "Filter",
    "FlatMap",
    "ItemEvent",
    "Map",
    "NOT_PROVIDED",
    "PipelineError",
    "PrematureQueryError",
    "Reduce",
    "SinkState",
    "Source",
    "StageContext",
    "StatusSink",
    "Step",
    "Stream",
    "StreamChainError",
    "StreamProcessor",
    "TransformError",
    "UpstreamError",
]
