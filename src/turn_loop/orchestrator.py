"""Core turn loop: the AgentLoop orchestrator."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Sequence
from typing import Any, Awaitable, Callable

from responses_api.errors import (
    FatalTransportError,
    ProtocolAnomaly,
    RetriesExhaustedError,
    StreamInterruptedError,
    TransientTransportError,
    TransportError,
)
from responses_api.items import FunctionCall, FunctionCallOutput, Item
from responses_api.request import FunctionTool, ResponsesRequest
from responses_api.transport import Transport
from turn_loop.cancellation import CancellationController, discard
from turn_loop.collaborators import (
    REJECTED,
    ApprovalDecider,
    ReviewDecision,
    ToolHandler,
    aborted_output,
    auto_approve,
    no_tools,
    resolve,
)
from turn_loop.config import AgentConfig
from turn_loop.events import (
    ErrorEvent,
    EventEmitter,
    ItemEvent,
    LoadingEvent,
    ProtocolAnomalyEvent,
    ResponseIdEvent,
    RetryEvent,
    TurnSettledEvent,
    TurnStartEvent,
)
from turn_loop.ledger import ResponseLedger
from turn_loop.reader import StreamReader
from turn_loop.tools import FunctionRegistry
from turn_loop.turns import RunResult, RunStatus, Turn, TurnState, filter_dangling

logger = logging.getLogger(__name__)


class AgentLoop:
    """Drives conversation turns against a streaming Responses transport.

    Each turn sends the carried-forward items plus new input, consumes the
    event stream, and settles as completed, cancelled, or failed. Calls
    from completed turns are reviewed, answered by the tool handler, and
    sent back in the next turn. Calls whose response never completed are
    dropped from all later input, together with any output naming them.
    """

    def __init__(
        self,
        transport: Transport,
        config: AgentConfig | None = None,
        *,
        ledger: ResponseLedger | None = None,
        tool_handler: ToolHandler | None = None,
        approval: ApprovalDecider | None = None,
        on_item: Callable[[Item], None] | None = None,
        on_loading: Callable[[bool], None] | None = None,
        on_last_response_id: Callable[[str], None] | None = None,
        event_emitter: EventEmitter | None = None,
        session_id: str | None = None,
    ) -> None:
        self.id = session_id or str(uuid.uuid4())
        self.transport = transport
        self.config = config or AgentConfig()
        self.ledger = ledger or ResponseLedger()
        self.tool_handler = tool_handler or no_tools
        self.approval = approval or auto_approve
        self.event_emitter = event_emitter or EventEmitter()
        self.turns: list[Turn] = []
        self.transcript: list[Item] = []

        if on_item is not None:
            self.event_emitter.subscribe(ItemEvent, lambda e: on_item(e.item))
        if on_loading is not None:
            self.event_emitter.subscribe(LoadingEvent, lambda e: on_loading(e.loading))
        if on_last_response_id is not None:
            self.event_emitter.subscribe(ResponseIdEvent, lambda e: on_last_response_id(e.response_id))

        self._unsent: list[Item] = []
        self._dropped_ids: set[str] = set()
        self._controller: CancellationController | None = None
        self._closed = False
        self._next_index = 0

    # --- Public API ---

    @property
    def running(self) -> bool:
        return self._controller is not None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_items(self) -> list[Item]:
        """Items that will be sent ahead of the next run's input."""
        return list(self._unsent)

    @property
    def dropped_call_ids(self) -> frozenset[str]:
        return frozenset(self._dropped_ids)

    async def run(self, items: Sequence[Item] = ()) -> RunResult:
        """Run turns for new input until the model stops calling functions.

        Raises :class:`FatalTransportError` if a turn fails for good.
        Cancellation is not an error: the result's status says so.
        """
        if self._closed:
            raise RuntimeError("AgentLoop is closed")
        if self._controller is not None:
            raise RuntimeError("A run is already in progress")

        controller = CancellationController()
        self._controller = controller
        first = len(self.turns)
        next_input = [*self._unsent, *items]
        self._unsent = []
        self.event_emitter.emit(LoadingEvent(loading=True))
        try:
            status = await self._drive(next_input, controller)
        finally:
            self._controller = None
            self.event_emitter.emit(LoadingEvent(loading=False))

        return RunResult(
            status=status,
            turns=tuple(self.turns[first:]),
            response_id=self.ledger.current_id(),
            outputs=tuple(i for i in self._unsent if isinstance(i, FunctionCallOutput)),
        )

    def cancel(self) -> None:
        """Cancel the active run, if any. Returns immediately."""
        controller = self._controller
        if controller is None:
            logger.debug("cancel() with no active run")
            return
        if controller.cancel():
            logger.info("Run cancelled")

    def close(self) -> None:
        """Stop the active run and refuse further input."""
        self._closed = True
        self.cancel()

    # --- Turn driving ---

    async def _drive(self, next_input: list[Item], controller: CancellationController) -> RunStatus:
        for _ in range(self.config.max_turns_per_run):
            turn = await self._run_turn(next_input, controller)
            if turn.state != TurnState.COMPLETED:
                return RunStatus.CANCELLED

            self.transcript.extend(turn.input)
            self.transcript.extend(turn.emitted)

            calls = turn.completed_calls()
            if not calls:
                return RunStatus.COMPLETED

            outputs, stop = await self._answer_calls(calls, controller)
            if controller.cancelled or stop:
                self._unsent = list(outputs)
                return RunStatus.CANCELLED if controller.cancelled else RunStatus.STOPPED
            next_input = list(outputs)

        logger.warning("Turn limit (%d) reached", self.config.max_turns_per_run)
        self._unsent = next_input
        return RunStatus.TURN_LIMIT

    async def _run_turn(self, input_items: list[Item], controller: CancellationController) -> Turn:
        """Run one turn, retrying transient failures with fresh trackers."""
        index = self._next_index
        self._next_index += 1
        input_items = self._sanitize(input_items)
        policy = self.config.retry
        attempt = 0

        while True:
            attempt += 1
            turn = Turn(
                index=index,
                input=tuple(input_items),
                request=self._build_request(input_items),
                attempt=attempt,
            )
            self.turns.append(turn)
            self.event_emitter.emit(TurnStartEvent(turn_index=index, attempt=attempt))

            try:
                await self._attempt(turn, controller)
            except asyncio.CancelledError:
                controller.cancel()
                if not turn.settled:
                    turn.cancel()
                self._settle(turn)
                self._unsent = turn.carry_forward()
                raise
            except TransportError as exc:
                if controller.cancelled:
                    turn.cancel()
                    self._settle(turn)
                    self._unsent = turn.carry_forward()
                    return turn
                turn.fail(exc)
                self._settle(turn)
                if not policy.should_retry(exc, attempt):
                    self._unsent = turn.carry_forward()
                    self.event_emitter.emit(ErrorEvent(error=str(exc), recoverable=False))
                    if isinstance(exc, FatalTransportError):
                        raise
                    raise self._surface(exc, attempt) from exc
                delay = policy.delay_for(exc, attempt)
                logger.warning(
                    "Turn %d attempt %d/%d failed: %s; retrying in %.2fs",
                    index, attempt, policy.max_attempts, exc, delay,
                )
                self.event_emitter.emit(RetryEvent(attempt=attempt, delay=delay, error=str(exc)))
                if await controller.sleep(delay):
                    logger.info("Cancelled during backoff")
                    self._unsent = turn.carry_forward()
                    return turn
                continue
            except Exception as exc:
                turn.fail(exc)
                self._settle(turn)
                self._unsent = turn.carry_forward()
                raise

            self._settle(turn)
            if turn.state != TurnState.COMPLETED:
                self._unsent = turn.carry_forward()
            return turn

    async def _attempt(self, turn: Turn, controller: CancellationController) -> None:
        controller.bind(turn.tracker)
        turn.mark_sent()

        create = asyncio.ensure_future(self.transport.create(turn.request))
        if not await controller.race(create):
            await _abandon(create)
            turn.cancel()
            return
        stream = create.result()
        controller.attach(stream)

        reader = StreamReader(
            turn.tracker,
            self.ledger,
            on_item=self._on_item,
            on_commit=self._on_commit,
            on_anomaly=self._on_anomaly,
        )
        turn.emitted = reader.items
        events = controller.events(stream)
        try:
            await reader.consume(events)
        finally:
            await events.aclose()
            controller.detach()
            await stream.aclose()

        if reader.completed:
            turn.complete(reader.response_id)
        elif controller.cancelled:
            turn.cancel()
        else:
            raise StreamInterruptedError("Stream ended before response.completed")

    def _settle(self, turn: Turn) -> None:
        """Record a settled attempt.

        Dangling calls are dropped from later input until a completed
        response carries the same call id again.
        """
        if turn.state == TurnState.COMPLETED:
            revived = self._dropped_ids & {c.call_id for c in turn.completed_calls()}
            if revived:
                self._dropped_ids -= revived
                logger.info(
                    "Turn %d completed previously dropped call(s): %s",
                    turn.index, ", ".join(sorted(revived)),
                )
        dropped = turn.dangling_ids()
        if dropped:
            self._dropped_ids |= dropped
            logger.info(
                "Turn %d (%s) dropped dangling call(s): %s",
                turn.index, turn.state.value, ", ".join(sorted(dropped)),
            )
        self.event_emitter.emit(TurnSettledEvent(
            turn_index=turn.index,
            attempt=turn.attempt,
            state=turn.state.value,
            dropped_call_ids=tuple(sorted(dropped)),
        ))

    @staticmethod
    def _surface(exc: TransportError, attempt: int) -> FatalTransportError:
        if isinstance(exc, TransientTransportError):
            return RetriesExhaustedError(
                f"Gave up after {attempt} attempt(s): {exc}", attempts=attempt, cause=exc,
            )
        return FatalTransportError(str(exc), cause=exc)

    # --- Request building ---

    def _sanitize(self, items: list[Item]) -> list[Item]:
        kept = filter_dangling(items, self._dropped_ids)
        if len(kept) != len(items):
            logger.warning("Removed %d item(s) referencing dropped calls", len(items) - len(kept))
        return kept

    def _build_request(self, input_items: list[Item]) -> ResponsesRequest:
        previous = self.ledger.current_id() if self.config.chain_responses else None
        items = input_items if previous else [*self.transcript, *input_items]
        return ResponsesRequest.build(
            model=self.config.model,
            instructions=self.config.instructions,
            input=items,
            previous_response_id=previous,
            tools=self._tool_definitions(),
        )

    def _tool_definitions(self) -> list[FunctionTool]:
        tools = list(self.config.tools)
        if isinstance(self.tool_handler, FunctionRegistry):
            tools.extend(self.tool_handler.definitions())
        return tools

    # --- Function calls ---

    async def _answer_calls(
        self, calls: list[FunctionCall], controller: CancellationController,
    ) -> tuple[list[FunctionCallOutput], bool]:
        """Produce one output per completed call.

        Calls reached after a cancel or a stop request get the aborted
        placeholder; their response completed, so pairing them is legal.
        """
        outputs: list[FunctionCallOutput] = []
        stop = False
        for call in calls:
            if controller.cancelled or stop:
                output = aborted_output(call.call_id)
            else:
                output, stop = await self._answer(call, controller)
            outputs.append(output)
            self.event_emitter.emit(ItemEvent(item=output))
        return outputs, stop

    async def _answer(
        self, call: FunctionCall, controller: CancellationController,
    ) -> tuple[FunctionCallOutput, bool]:
        won, decision = await _guarded(resolve(self.approval(call)), controller)
        if not won:
            return aborted_output(call.call_id), False
        if decision == ReviewDecision.NO_EXIT:
            return FunctionCallOutput(call_id=call.call_id, output=REJECTED), True
        if decision == ReviewDecision.NO_CONTINUE:
            return FunctionCallOutput(call_id=call.call_id, output=REJECTED), False

        try:
            won, text = await _guarded(resolve(self.tool_handler(call)), controller)
        except Exception as e:
            logger.warning("Tool handler failed for %s: %s", call.name, e)
            text = json.dumps({"error": f"Tool error ({call.name}): {e}"})
            won = True
        if not won:
            return aborted_output(call.call_id), False
        return FunctionCallOutput(call_id=call.call_id, output=text), False

    # --- Reader callbacks ---

    def _on_item(self, item: Item) -> None:
        self.event_emitter.emit(ItemEvent(item=item))

    def _on_commit(self, response_id: str) -> None:
        self.event_emitter.emit(ResponseIdEvent(response_id=response_id))

    def _on_anomaly(self, anomaly: ProtocolAnomaly) -> None:
        self.event_emitter.emit(ProtocolAnomalyEvent(message=str(anomaly)))


async def _guarded(aw: Awaitable[Any], controller: CancellationController) -> tuple[bool, Any]:
    """Await *aw* unless cancelled first. Returns (finished, result)."""
    task = asyncio.ensure_future(aw)
    if await controller.race(task):
        return True, task.result()
    await discard(task)
    return False, None


async def _abandon(create: asyncio.Future[Any]) -> None:
    """Dispose of a stream request overtaken by cancellation."""
    if create.done() and not create.cancelled() and create.exception() is None:
        stream = create.result()
        stream.abort()
        await stream.aclose()
        return
    await discard(create)
