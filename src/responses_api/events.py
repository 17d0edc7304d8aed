"""Streaming event types and SSE frame decoding."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from responses_api.errors import ProtocolAnomaly
from responses_api.items import Item, item_from_dict


class StreamEventType(StrEnum):
    """Kinds of events emitted on a response stream."""

    CREATED = "response.created"
    OUTPUT_ITEM_DONE = "response.output_item.done"
    OUTPUT_TEXT_DELTA = "response.output_text.delta"
    COMPLETED = "response.completed"
    FAILED = "response.failed"
    INCOMPLETE = "response.incomplete"
    ERROR = "error"
    OTHER = "other"


@dataclass(frozen=True)
class StreamEvent:
    """A single event on a response stream."""

    type: StreamEventType
    item: Item | None = None
    response_id: str | None = None
    delta: str | None = None
    error: dict[str, Any] | None = field(default=None, compare=False, hash=False)
    name: str = ""
    raw: dict[str, Any] | None = field(default=None, compare=False, hash=False)

    @classmethod
    def output_item_done(cls, item: Item) -> StreamEvent:
        return cls(type=StreamEventType.OUTPUT_ITEM_DONE, item=item)

    @classmethod
    def completed(cls, response_id: str) -> StreamEvent:
        return cls(type=StreamEventType.COMPLETED, response_id=response_id)

    @classmethod
    def failed(cls, message: str, code: str | None = None) -> StreamEvent:
        return cls(type=StreamEventType.FAILED, error={"message": message, "code": code})

    @property
    def is_terminal(self) -> bool:
        return self.type in (
            StreamEventType.COMPLETED,
            StreamEventType.FAILED,
            StreamEventType.INCOMPLETE,
            StreamEventType.ERROR,
        )


def _response_error(response: dict[str, Any]) -> dict[str, Any] | None:
    error = response.get("error")
    if isinstance(error, dict):
        return error
    details = response.get("incomplete_details")
    if isinstance(details, dict):
        return {"message": details.get("reason", "incomplete"), "code": details.get("reason")}
    return None


def decode_event(name: str, data: str) -> StreamEvent:
    """Decode one SSE frame into a :class:`StreamEvent`.

    The event kind comes from the ``type`` field of the JSON payload, falling
    back to the SSE ``event:`` name. Unknown kinds decode as ``OTHER``.
    Raises :class:`ProtocolAnomaly` for frames that cannot be understood.
    """
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as exc:
        raise ProtocolAnomaly(f"undecodable event data for {name!r}: {exc}", raw=data) from exc
    if not isinstance(payload, dict):
        raise ProtocolAnomaly(f"event payload for {name!r} is not an object", raw=data)

    kind = payload.get("type") or name
    try:
        etype = StreamEventType(kind)
    except ValueError:
        return StreamEvent(type=StreamEventType.OTHER, name=kind, raw=payload)

    if etype == StreamEventType.OUTPUT_ITEM_DONE:
        item = payload.get("item")
        if not isinstance(item, dict):
            raise ProtocolAnomaly("output_item.done without an item", raw=payload)
        return StreamEvent(type=etype, item=item_from_dict(item), name=kind, raw=payload)

    if etype == StreamEventType.OUTPUT_TEXT_DELTA:
        return StreamEvent(type=etype, delta=payload.get("delta", ""), name=kind, raw=payload)

    if etype in (StreamEventType.CREATED, StreamEventType.COMPLETED):
        response = payload.get("response") or {}
        return StreamEvent(type=etype, response_id=response.get("id"), name=kind, raw=payload)

    if etype in (StreamEventType.FAILED, StreamEventType.INCOMPLETE):
        response = payload.get("response") or {}
        return StreamEvent(
            type=etype,
            response_id=response.get("id"),
            error=_response_error(response),
            name=kind,
            raw=payload,
        )

    if etype == StreamEventType.ERROR:
        error = payload.get("error", payload)
        return StreamEvent(type=etype, error=error if isinstance(error, dict) else None, name=kind, raw=payload)

    return StreamEvent(type=etype, name=kind, raw=payload)
