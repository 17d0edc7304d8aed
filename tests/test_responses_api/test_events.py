"""Tests for stream event decoding."""
from __future__ import annotations

import json

import pytest

from responses_api.errors import ProtocolAnomaly
from responses_api.events import StreamEvent, StreamEventType, decode_event
from responses_api.items import FunctionCall, MessageItem


def _frame(data: dict) -> str:
    return json.dumps(data)


class TestDecodeEvent:
    def test_output_item_done_function_call(self) -> None:
        event = decode_event("response.output_item.done", _frame({
            "type": "response.output_item.done",
            "item": {"type": "function_call", "call_id": "c1", "name": "shell", "arguments": "{}"},
        }))
        assert event.type == StreamEventType.OUTPUT_ITEM_DONE
        assert isinstance(event.item, FunctionCall)
        assert event.item.call_id == "c1"

    def test_output_item_done_message(self) -> None:
        event = decode_event("response.output_item.done", _frame({
            "item": {"type": "message", "role": "assistant",
                     "content": [{"type": "output_text", "text": "hi"}]},
        }))
        assert isinstance(event.item, MessageItem)
        assert event.item.text == "hi"

    def test_completed_carries_response_id(self) -> None:
        event = decode_event("response.completed", _frame({
            "type": "response.completed", "response": {"id": "resp_1", "status": "completed"},
        }))
        assert event.type == StreamEventType.COMPLETED
        assert event.response_id == "resp_1"
        assert event.is_terminal

    def test_kind_from_payload_type_wins(self) -> None:
        event = decode_event("message", _frame({"type": "response.completed", "response": {"id": "r"}}))
        assert event.type == StreamEventType.COMPLETED

    def test_failed_carries_error(self) -> None:
        event = decode_event("response.failed", _frame({
            "type": "response.failed",
            "response": {"id": "r", "error": {"code": "server_error", "message": "boom"}},
        }))
        assert event.type == StreamEventType.FAILED
        assert event.error == {"code": "server_error", "message": "boom"}

    def test_incomplete_reason(self) -> None:
        event = decode_event("response.incomplete", _frame({
            "type": "response.incomplete",
            "response": {"id": "r", "incomplete_details": {"reason": "max_output_tokens"}},
        }))
        assert event.type == StreamEventType.INCOMPLETE
        assert event.error["message"] == "max_output_tokens"

    def test_error_event(self) -> None:
        event = decode_event("error", _frame({"type": "error", "code": "server_error", "message": "x"}))
        assert event.type == StreamEventType.ERROR
        assert event.error["message"] == "x"

    def test_text_delta(self) -> None:
        event = decode_event("response.output_text.delta", _frame({"delta": "He"}))
        assert event.delta == "He"
        assert not event.is_terminal

    def test_unknown_kind_is_other(self) -> None:
        event = decode_event("response.reasoning.delta", _frame({"type": "response.reasoning.delta"}))
        assert event.type == StreamEventType.OTHER
        assert event.name == "response.reasoning.delta"

    def test_bad_json_is_anomaly(self) -> None:
        with pytest.raises(ProtocolAnomaly):
            decode_event("response.completed", "{not json")

    def test_non_object_payload_is_anomaly(self) -> None:
        with pytest.raises(ProtocolAnomaly):
            decode_event("response.completed", "[1, 2]")

    def test_item_done_without_item_is_anomaly(self) -> None:
        with pytest.raises(ProtocolAnomaly, match="without an item"):
            decode_event("response.output_item.done", _frame({"type": "response.output_item.done"}))


class TestStreamEventFactories:
    def test_completed_factory(self) -> None:
        assert StreamEvent.completed("r1") == StreamEvent(type=StreamEventType.COMPLETED, response_id="r1")

    def test_failed_factory(self) -> None:
        event = StreamEvent.failed("boom", code="server_error")
        assert event.error == {"message": "boom", "code": "server_error"}
