"""Conversation items exchanged with the Responses API."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ItemType(StrEnum):
    """Discriminator for conversation item kinds."""

    MESSAGE = "message"
    FUNCTION_CALL = "function_call"
    FUNCTION_CALL_OUTPUT = "function_call_output"


@dataclass(frozen=True)
class MessageItem:
    """A user, assistant, or system message."""

    role: str
    content: tuple[dict[str, Any], ...] = ()
    id: str | None = None

    type = ItemType.MESSAGE

    @classmethod
    def user(cls, text: str) -> MessageItem:
        return cls(role="user", content=({"type": "input_text", "text": text},))

    @classmethod
    def assistant(cls, text: str) -> MessageItem:
        return cls(role="assistant", content=({"type": "output_text", "text": text},))

    @property
    def text(self) -> str:
        """Concatenated text of every text block."""
        return "".join(block.get("text", "") for block in self.content)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": "message",
            "role": self.role,
            "content": [dict(block) for block in self.content],
        }
        if self.id:
            data["id"] = self.id
        return data


@dataclass(frozen=True)
class FunctionCall:
    """A model-emitted request to invoke a function."""

    call_id: str
    name: str
    arguments: str = "{}"
    id: str | None = None

    type = ItemType.FUNCTION_CALL

    def parsed_arguments(self) -> dict[str, Any]:
        """Decode the serialized arguments; malformed JSON yields ``{}``."""
        try:
            value = json.loads(self.arguments) if self.arguments else {}
        except json.JSONDecodeError:
            return {}
        return value if isinstance(value, dict) else {}

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": "function_call",
            "call_id": self.call_id,
            "name": self.name,
            "arguments": self.arguments,
        }
        if self.id:
            data["id"] = self.id
        return data


@dataclass(frozen=True)
class FunctionCallOutput:
    """The result of a function call, referencing it by ``call_id``."""

    call_id: str
    output: str = ""

    type = ItemType.FUNCTION_CALL_OUTPUT

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "function_call_output",
            "call_id": self.call_id,
            "output": self.output,
        }


@dataclass(frozen=True)
class OtherItem:
    """Any other protocol item kind, kept verbatim."""

    type: str
    data: dict[str, Any] = field(default_factory=dict, hash=False)

    def to_dict(self) -> dict[str, Any]:
        return {**self.data, "type": self.type}


Item = MessageItem | FunctionCall | FunctionCallOutput | OtherItem


def item_from_dict(data: dict[str, Any]) -> Item:
    """Parse a JSON item into its typed form."""
    item_type = data.get("type", "")

    if item_type == ItemType.MESSAGE:
        content = data.get("content", ())
        if isinstance(content, str):
            content = ({"type": "input_text", "text": content},)
        return MessageItem(
            role=data.get("role", "assistant"),
            content=tuple(content),
            id=data.get("id"),
        )

    if item_type == ItemType.FUNCTION_CALL:
        arguments = data.get("arguments", "{}")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        # Older payloads only carry ``id``
        call_id = data.get("call_id") or data.get("id") or ""
        return FunctionCall(
            call_id=call_id,
            name=data.get("name", ""),
            arguments=arguments,
            id=data.get("id"),
        )

    if item_type == ItemType.FUNCTION_CALL_OUTPUT:
        output = data.get("output", "")
        if not isinstance(output, str):
            output = json.dumps(output)
        return FunctionCallOutput(call_id=data.get("call_id", ""), output=output)

    rest = {k: v for k, v in data.items() if k != "type"}
    return OtherItem(type=item_type, data=rest)
