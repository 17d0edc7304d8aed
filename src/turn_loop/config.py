"""Agent configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from responses_api.request import FunctionTool
from turn_loop.retry import RetryPolicy

DEFAULT_MODEL = "gpt-4.1"


@dataclass(frozen=True)
class AgentConfig:
    """Configuration for an agent loop."""

    model: str = DEFAULT_MODEL
    instructions: str = ""
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    chain_responses: bool = True  # send previous_response_id instead of the transcript
    max_turns_per_run: int = 50
    tools: tuple[FunctionTool, ...] = ()

    @classmethod
    def from_env(cls, **overrides: Any) -> AgentConfig:
        """Build a config from ``TURN_LOOP_*`` environment variables.

        Keyword overrides that are not None take precedence.
        """
        values: dict[str, Any] = {}
        if os.environ.get("TURN_LOOP_MODEL"):
            values["model"] = os.environ["TURN_LOOP_MODEL"]
        if os.environ.get("TURN_LOOP_INSTRUCTIONS"):
            values["instructions"] = os.environ["TURN_LOOP_INSTRUCTIONS"]
        if os.environ.get("TURN_LOOP_MAX_ATTEMPTS"):
            values["retry"] = RetryPolicy(max_attempts=int(os.environ["TURN_LOOP_MAX_ATTEMPTS"]))
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
