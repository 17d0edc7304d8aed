"""Request body for the Responses API."""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from responses_api.items import Item


@dataclass(frozen=True)
class FunctionTool:
    """A function the model may call."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=dict, hash=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters or {"type": "object", "properties": {}},
        }


@dataclass(frozen=True)
class ResponsesRequest:
    """One request: model, instructions, ordered input, optional chaining."""

    model: str
    instructions: str = ""
    input: tuple[Item, ...] = ()
    previous_response_id: str | None = None
    tools: tuple[FunctionTool, ...] = ()

    @classmethod
    def build(
        cls,
        model: str,
        instructions: str,
        input: Sequence[Item],
        previous_response_id: str | None = None,
        tools: Sequence[FunctionTool] = (),
    ) -> ResponsesRequest:
        return cls(
            model=model,
            instructions=instructions,
            input=tuple(input),
            previous_response_id=previous_response_id,
            tools=tuple(tools),
        )

    def to_body(self) -> dict[str, Any]:
        """Translate into the JSON body POSTed to ``/v1/responses``."""
        body: dict[str, Any] = {
            "model": self.model,
            "instructions": self.instructions,
            "input": [item.to_dict() for item in self.input],
            "stream": True,
            "parallel_tool_calls": False,
        }
        if self.previous_response_id:
            body["previous_response_id"] = self.previous_response_id
        if self.tools:
            body["tools"] = [t.to_dict() for t in self.tools]
        return body
