"""Per-turn bookkeeping of emitted function calls."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from responses_api.items import FunctionCall

logger = logging.getLogger(__name__)


class CallStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class FunctionCallRecord:
    """Status of one function call for the lifetime of a turn."""

    call: FunctionCall
    status: CallStatus = CallStatus.PENDING

    @property
    def call_id(self) -> str:
        return self.call.call_id


class CallTracker:
    """Tracks the function calls emitted during a single turn.

    A record starts ``pending`` and moves exactly once: to ``completed`` when
    the owning response reaches its terminal completed event, or to
    ``cancelled`` when the turn is aborted first. Insertion-order stable.
    """

    def __init__(self) -> None:
        self._records: dict[str, FunctionCallRecord] = {}
        self._settled: CallStatus | None = None

    def observe(self, call: FunctionCall) -> bool:
        """Register a new pending record. Returns False for duplicates."""
        if call.call_id in self._records:
            logger.warning("Duplicate function call id %r ignored", call.call_id)
            return False
        if self._settled is not None:
            logger.warning(
                "Function call %r observed after the turn settled as %s; ignored",
                call.call_id, self._settled,
            )
            return False
        self._records[call.call_id] = FunctionCallRecord(call=call)
        return True

    def mark_all_completed(self) -> int:
        """Move every pending record to completed. Returns how many moved."""
        return self._settle(CallStatus.COMPLETED)

    def mark_all_cancelled(self) -> int:
        """Move every pending record to cancelled. Returns how many moved."""
        return self._settle(CallStatus.CANCELLED)

    def pending_or_cancelled_ids(self) -> frozenset[str]:
        """Ids that must never be paired with an output."""
        return frozenset(
            r.call_id for r in self._records.values() if r.status != CallStatus.COMPLETED
        )

    def completed_calls(self) -> list[FunctionCall]:
        return [r.call for r in self._records.values() if r.status == CallStatus.COMPLETED]

    def get(self, call_id: str) -> FunctionCallRecord | None:
        return self._records.get(call_id)

    def records(self) -> list[FunctionCallRecord]:
        return list(self._records.values())

    @property
    def settled(self) -> CallStatus | None:
        """The status the tracker settled into, or None while still open."""
        return self._settled

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._records

    def _settle(self, status: CallStatus) -> int:
        if self._settled is not None:
            logger.debug("Tracker already settled as %s; ignoring %s", self._settled, status)
            return 0
        self._settled = status
        moved = 0
        for record in self._records.values():
            if record.status == CallStatus.PENDING:
                record.status = status
                moved += 1
        return moved
