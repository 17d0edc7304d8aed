"""Turn records and run results."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from responses_api.items import FunctionCall, FunctionCallOutput, Item
from responses_api.request import ResponsesRequest
from turn_loop.tracker import CallTracker


class TurnState(Enum):
    BUILDING = "building"
    SENT = "sent"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATES = frozenset({TurnState.COMPLETED, TurnState.CANCELLED, TurnState.FAILED})


class RunStatus(Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    STOPPED = "stopped"  # the reviewer asked to stop
    TURN_LIMIT = "turn_limit"


def filter_dangling(items: Iterable[Item], dangling: Iterable[str]) -> list[Item]:
    """Drop function calls with a dangling id and outputs that reference one."""
    ids = frozenset(dangling)
    if not ids:
        return list(items)
    return [
        item for item in items
        if not (isinstance(item, (FunctionCall, FunctionCallOutput)) and item.call_id in ids)
    ]


@dataclass
class Turn:
    """One request/response cycle.

    ``input`` is what the caller asked to send this turn; ``request`` is what
    was actually sent (it may prepend the transcript when not chaining).
    Each attempt of a retried turn is its own Turn with a fresh tracker.
    """

    index: int
    input: tuple[Item, ...]
    request: ResponsesRequest
    attempt: int = 1
    tracker: CallTracker = field(default_factory=CallTracker)
    state: TurnState = TurnState.BUILDING
    emitted: list[Item] = field(default_factory=list)
    response_id: str | None = None
    error: BaseException | None = None

    def mark_sent(self) -> None:
        self._transition(TurnState.SENT)

    def complete(self, response_id: str) -> None:
        self._transition(TurnState.COMPLETED)
        self.response_id = response_id

    def cancel(self) -> None:
        self._transition(TurnState.CANCELLED)

    def fail(self, error: BaseException) -> None:
        self._transition(TurnState.FAILED)
        self.error = error

    @property
    def settled(self) -> bool:
        return self.state in TERMINAL_STATES

    def completed_calls(self) -> list[FunctionCall]:
        """Calls eligible for pairing with an output."""
        if self.state != TurnState.COMPLETED:
            return []
        return self.tracker.completed_calls()

    def dangling_ids(self) -> frozenset[str]:
        """Calls that never reached a completed response."""
        if self.state == TurnState.COMPLETED:
            return frozenset()
        return self.tracker.pending_or_cancelled_ids()

    def carry_forward(self) -> list[Item]:
        """Items to resend after this turn ended without completing.

        Only the turn's own input: everything it emitted belongs to a
        response the service never stored.
        """
        return filter_dangling(self.input, self.dangling_ids())

    def _transition(self, state: TurnState) -> None:
        if self.settled:
            raise RuntimeError(f"Turn {self.index} already settled as {self.state.value}")
        self.state = state


@dataclass(frozen=True)
class RunResult:
    """Outcome of one :meth:`AgentLoop.run` call."""

    status: RunStatus
    turns: tuple[Turn, ...] = ()
    response_id: str | None = None
    outputs: tuple[FunctionCallOutput, ...] = ()

    @property
    def last_turn(self) -> Turn | None:
        return self.turns[-1] if self.turns else None

    def items(self) -> list[Item]:
        """Every item emitted by the run's completed turns, in order."""
        out: list[Item] = []
        for turn in self.turns:
            if turn.state == TurnState.COMPLETED:
                out.extend(turn.emitted)
        return out
