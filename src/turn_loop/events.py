"""Event system for the turn loop."""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Union

from responses_api.items import Item


# --- Event dataclasses ---


@dataclass(frozen=True)
class ItemEvent:
    """An item (message, call, or output) became final."""

    item: Item


@dataclass(frozen=True)
class LoadingEvent:
    loading: bool


@dataclass(frozen=True)
class ResponseIdEvent:
    """The ledger committed a new response id."""

    response_id: str


@dataclass(frozen=True)
class TurnStartEvent:
    turn_index: int
    attempt: int = 1


@dataclass(frozen=True)
class TurnSettledEvent:
    turn_index: int
    attempt: int
    state: str
    dropped_call_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class RetryEvent:
    attempt: int
    delay: float
    error: str


@dataclass(frozen=True)
class ProtocolAnomalyEvent:
    message: str


@dataclass(frozen=True)
class ErrorEvent:
    error: str
    recoverable: bool = True


TurnLoopEvent = Union[
    ItemEvent,
    LoadingEvent,
    ResponseIdEvent,
    TurnStartEvent,
    TurnSettledEvent,
    RetryEvent,
    ProtocolAnomalyEvent,
    ErrorEvent,
]
Listener = Callable[[Any], None]


class EventEmitter:
    """Dispatches turn-loop events to listeners, synchronously and in order.

    Listeners run on the task that emits, so they must not block. A
    listener that raises propagates into the emitting turn.
    """

    def __init__(self) -> None:
        self._by_type: dict[type, list[Listener]] = defaultdict(list)
        self._catch_all: list[Listener] = []

    def subscribe(self, event_type: type, listener: Listener) -> Callable[[], None]:
        """Listen for one event class. Returns a function that unsubscribes."""
        self._by_type[event_type].append(listener)
        return lambda: self._discard(self._by_type[event_type], listener)

    def on_all(self, listener: Listener) -> Callable[[], None]:
        """Listen for every event. Returns a function that unsubscribes."""
        self._catch_all.append(listener)
        return lambda: self._discard(self._catch_all, listener)

    def emit(self, event: TurnLoopEvent) -> None:
        # Copy so a listener may unsubscribe itself mid-dispatch
        for listener in [*self._catch_all, *self._by_type.get(type(event), ())]:
            listener(event)

    @staticmethod
    def _discard(listeners: list[Listener], listener: Listener) -> None:
        if listener in listeners:
            listeners.remove(listener)
