"""Narrow interfaces the loop consumes: approval, formatting, tool handling."""

from __future__ import annotations

import inspect
import json
import shlex
from enum import StrEnum
from typing import Any, Awaitable, Callable, Protocol, TypeVar, Union

from responses_api.items import FunctionCall, FunctionCallOutput, Item, MessageItem

T = TypeVar("T")


class ReviewDecision(StrEnum):
    YES = "yes"
    NO_CONTINUE = "no_continue"
    NO_EXIT = "no_exit"


ApprovalDecider = Callable[[FunctionCall], Union[ReviewDecision, Awaitable[ReviewDecision]]]


class ToolHandler(Protocol):
    """Produces the output text for an approved function call."""

    def __call__(self, call: FunctionCall) -> str | Awaitable[str]: ...


def auto_approve(call: FunctionCall) -> ReviewDecision:
    """Approval decider that approves everything."""
    return ReviewDecision.YES


def no_tools(call: FunctionCall) -> str:
    """Tool handler used when none is configured."""
    return json.dumps({"error": f"No handler for function {call.name!r}"})


async def resolve(value: T | Awaitable[T]) -> T:
    """Await *value* if a collaborator returned an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


REJECTED = "rejected by user"


def aborted_output(call_id: str) -> FunctionCallOutput:
    """Placeholder output for a completed call that never ran."""
    payload = {"output": "aborted", "metadata": {"exit_code": 1, "duration_seconds": 0}}
    return FunctionCallOutput(call_id=call_id, output=json.dumps(payload))


def format_command(item: Item) -> str:
    """Human-readable one-liner for an item."""
    if isinstance(item, FunctionCall):
        args = item.parsed_arguments()
        command = args.get("cmd") or args.get("command")
        if isinstance(command, list) and all(isinstance(c, str) for c in command):
            return f"$ {shlex.join(command)}"
        if isinstance(command, str):
            return f"$ {command}"
        return f"{item.name}({_compact(args)})"
    if isinstance(item, FunctionCallOutput):
        return f"[{item.call_id}] {_truncate(item.output)}"
    if isinstance(item, MessageItem):
        return f"{item.role}: {item.text}"
    return f"<{item.type}>"


def _compact(args: dict[str, Any]) -> str:
    return ", ".join(f"{k}={json.dumps(v)}" for k, v in args.items())


def _truncate(text: str, limit: int = 200) -> str:
    text = text.replace("\n", " ")
    return text if len(text) <= limit else text[: limit - 3] + "..."
