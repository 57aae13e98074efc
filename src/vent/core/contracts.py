from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, TypeVar, Union, runtime_checkable

__all__ = [
    "E",
    "TIERS",
    "EventProcessor",
    "Processor",
    "AnyProcessor",
    "DispatcherConfig",
    "as_callable",
    "describe",
]

E = TypeVar("E")

# Invocation order of the delivery pipeline.
TIERS = ("before_any", "before", "normal", "after", "after_any")


@runtime_checkable
class EventProcessor(Protocol):
    """Object-style processor: ``on_event`` returns True when it consumed the event."""

    def on_event(self, event: Any) -> Optional[bool]: ...


# A plain callable or an EventProcessor. None counts as "not consumed".
Processor = Union[Callable[[E], Optional[bool]], EventProcessor]
AnyProcessor = Union[Callable[[Any], Optional[bool]], EventProcessor]


@dataclass
class DispatcherConfig:
    name: str = "vent"
    base_type: Optional[type] = None     # every event type must derive from it
    isolate_errors: bool = False         # log processor failures instead of raising
    threadsafe: bool = False             # guard every operation with one RLock


def as_callable(processor: Any) -> Callable[[Any], Any]:
    """Resolve the callable used to invoke *processor*."""
    if isinstance(processor, EventProcessor) and callable(processor.on_event):
        return processor.on_event
    if callable(processor):
        return processor
    raise TypeError(f"processor must be callable or expose on_event(): {processor!r}")


def describe(processor: Any) -> str:
    return getattr(processor, "__qualname__", None) or type(processor).__name__
