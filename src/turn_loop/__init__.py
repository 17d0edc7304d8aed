"""Turn Loop: cancellation-safe turn management for streaming tool-using agents."""

from turn_loop.cancellation import CancellationController
from turn_loop.collaborators import (
    ApprovalDecider,
    ReviewDecision,
    ToolHandler,
    aborted_output,
    auto_approve,
    format_command,
)
from turn_loop.config import AgentConfig
from turn_loop.events import EventEmitter
from turn_loop.ledger import ResponseLedger
from turn_loop.orchestrator import AgentLoop
from turn_loop.reader import StreamReader
from turn_loop.retry import Disposition, RetryPolicy, calculate_delay, classify
from turn_loop.tools import FunctionRegistry, RegisteredFunction
from turn_loop.tracker import CallStatus, CallTracker, FunctionCallRecord
from turn_loop.turns import RunResult, RunStatus, Turn, TurnState, filter_dangling

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Core orchestrator
    "AgentLoop",
    "AgentConfig",
    "RunResult",
    "RunStatus",
    # Turn state machine
    "Turn",
    "TurnState",
    "CallTracker",
    "CallStatus",
    "FunctionCallRecord",
    "ResponseLedger",
    "StreamReader",
    "CancellationController",
    "filter_dangling",
    # Retry
    "RetryPolicy",
    "Disposition",
    "classify",
    "calculate_delay",
    # Collaborators
    "ApprovalDecider",
    "ReviewDecision",
    "ToolHandler",
    "FunctionRegistry",
    "RegisteredFunction",
    "auto_approve",
    "aborted_output",
    "format_command",
    # Events
    "EventEmitter",
]
