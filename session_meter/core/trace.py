"""
Structured trace events emitted while computing session metrics.

The engine never logs on its own; callers that want a trace pass a sink.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional


@dataclass(frozen=True)
class TraceEvent:
    """A named step of the computation with its details."""
    name: str
    fields: Dict[str, Any] = field(default_factory=dict)

    def format(self) -> str:
        details = " ".join(f"{key}={value}" for key, value in self.fields.items())
        return f"{self.name} {details}".rstrip()


TraceSink = Callable[[TraceEvent], None]


def emit(sink: Optional[TraceSink], name: str, **fields: Any) -> None:
    """Send a trace event to ``sink`` if one was supplied."""
    if sink is not None:
        sink(TraceEvent(name=name, fields=fields))


def logging_sink(logger: logging.Logger, level: int = logging.DEBUG) -> TraceSink:
    """Adapt a logger into a trace sink."""
    def _sink(event: TraceEvent) -> None:
        logger.log(level, "%s", event.format())
    return _sink
