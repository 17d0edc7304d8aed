"""Function registry: definitions, registration, and dispatch."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from responses_api.items import FunctionCall
from responses_api.request import FunctionTool
from turn_loop.collaborators import resolve

logger = logging.getLogger(__name__)

FunctionImpl = Callable[[dict[str, Any]], Any]


@dataclass(frozen=True)
class RegisteredFunction:
    """A tool definition paired with its implementation.

    The implementation receives the decoded arguments and returns a string,
    a JSON-serialisable value, or an awaitable of either.
    """

    definition: FunctionTool
    impl: FunctionImpl


class FunctionRegistry:
    """Registry of functions the model may call; usable as a tool handler.

    Latest-wins on name collision. Insertion-order stable.
    """

    def __init__(self) -> None:
        self._functions: dict[str, RegisteredFunction] = {}

    def register(
        self,
        name: str,
        impl: FunctionImpl,
        description: str = "",
        parameters: dict[str, Any] | None = None,
    ) -> None:
        """Register a function. Overwrites any existing one with the same name."""
        definition = FunctionTool(name=name, description=description, parameters=parameters or {})
        self._functions[name] = RegisteredFunction(definition=definition, impl=impl)

    def unregister(self, name: str) -> None:
        """Remove a function by name. No-op if not found."""
        self._functions.pop(name, None)

    def get(self, name: str) -> RegisteredFunction | None:
        return self._functions.get(name)

    def definitions(self) -> list[FunctionTool]:
        """Return all definitions in registration order."""
        return [f.definition for f in self._functions.values()]

    def names(self) -> list[str]:
        return list(self._functions.keys())

    async def __call__(self, call: FunctionCall) -> str:
        """Run the function named by *call* and return its output text.

        Unknown functions and exceptions become error outputs for the model.
        """
        registered = self._functions.get(call.name)
        if registered is None:
            return json.dumps({"error": f"Unknown function: {call.name}"})

        try:
            result = await resolve(registered.impl(call.parsed_arguments()))
        except Exception as e:
            logger.warning("Function %s failed: %s", call.name, e)
            return json.dumps({"error": f"Tool error ({call.name}): {e}"})

        if isinstance(result, str):
            return result
        return json.dumps(result)
