"""Consumes one response stream and routes events to the turn's trackers."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Callable

from responses_api.errors import IncompleteResponseError, ProtocolAnomaly, error_from_failure
from responses_api.events import StreamEvent, StreamEventType
from responses_api.items import FunctionCall, Item
from turn_loop.ledger import ResponseLedger
from turn_loop.tracker import CallTracker

logger = logging.getLogger(__name__)


class StreamReader:
    """Classifies stream events in arrival order.

    Finished items are forwarded as they arrive; function calls are
    registered with the tracker. The terminal completed event settles the
    tracker and commits the ledger. Failure events raise the matching
    transport error. Anomalies are logged and skipped.
    """

    def __init__(
        self,
        tracker: CallTracker,
        ledger: ResponseLedger,
        on_item: Callable[[Item], None] | None = None,
        on_commit: Callable[[str], None] | None = None,
        on_anomaly: Callable[[ProtocolAnomaly], None] | None = None,
    ) -> None:
        self.tracker = tracker
        self.ledger = ledger
        self.items: list[Item] = []
        self.response_id: str | None = None
        self._on_item = on_item
        self._on_commit = on_commit
        self._on_anomaly = on_anomaly

    @property
    def completed(self) -> bool:
        return self.response_id is not None

    async def consume(self, events: AsyncIterator[StreamEvent]) -> None:
        """Feed events until the stream ends or a terminal event is seen."""
        async for event in events:
            try:
                self.feed(event)
            except ProtocolAnomaly as exc:
                logger.warning("Protocol anomaly: %s", exc)
                if self._on_anomaly is not None:
                    self._on_anomaly(exc)
                continue
            if self.completed:
                break

    def feed(self, event: StreamEvent) -> None:
        """Process a single event."""
        if self.completed:
            raise ProtocolAnomaly(f"{event.type} received after response.completed", raw=event.raw)

        etype = event.type

        if etype == StreamEventType.OUTPUT_ITEM_DONE:
            self._accept_item(event)

        elif etype == StreamEventType.COMPLETED:
            if not event.response_id:
                raise ProtocolAnomaly("response.completed without a response id", raw=event.raw)
            self.tracker.mark_all_completed()
            self.ledger.commit(event.response_id)
            self.response_id = event.response_id
            if self._on_commit is not None:
                self._on_commit(event.response_id)

        elif etype in (StreamEventType.FAILED, StreamEventType.ERROR):
            raise error_from_failure(event.error)

        elif etype == StreamEventType.INCOMPLETE:
            reason = (event.error or {}).get("message", "incomplete")
            raise IncompleteResponseError(f"Response incomplete: {reason}", raw=event.raw)

        else:
            logger.debug("Ignoring stream event %s", event.name or etype)

    def _accept_item(self, event: StreamEvent) -> None:
        item = event.item
        if item is None:
            raise ProtocolAnomaly("output_item.done without an item", raw=event.raw)
        if isinstance(item, FunctionCall):
            if not item.call_id:
                raise ProtocolAnomaly("function_call without a call id", raw=event.raw)
            if not self.tracker.observe(item):
                return
        self.items.append(item)
        if self._on_item is not None:
            self._on_item(item)
