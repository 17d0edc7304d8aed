"""Responses API: wire types, streaming transport, and error taxonomy."""
from __future__ import annotations

from responses_api.errors import (
    AccessDeniedError,
    AuthenticationError,
    ConfigurationError,
    ContextLengthError,
    FatalTransportError,
    IncompleteResponseError,
    InvalidRequestError,
    NetworkError,
    NotFoundError,
    ProtocolAnomaly,
    QuotaExceededError,
    RateLimitError,
    RequestTimeoutError,
    ResponseFailedError,
    RetriesExhaustedError,
    ServerError,
    StreamInterruptedError,
    TransientTransportError,
    TransportError,
    error_from_failure,
    error_from_status_code,
)
from responses_api.events import StreamEvent, StreamEventType, decode_event
from responses_api.items import (
    FunctionCall,
    FunctionCallOutput,
    Item,
    ItemType,
    MessageItem,
    OtherItem,
    item_from_dict,
)
from responses_api.request import FunctionTool, ResponsesRequest
from responses_api.transport import (
    AdapterTimeout,
    HttpResponseStream,
    HttpTransport,
    ResponseStream,
    StallingScript,
    StubResponseStream,
    StubTransport,
    Transport,
)

__all__ = [
    # Items
    "Item",
    "ItemType",
    "MessageItem",
    "FunctionCall",
    "FunctionCallOutput",
    "OtherItem",
    "item_from_dict",
    # Request
    "FunctionTool",
    "ResponsesRequest",
    # Events
    "StreamEvent",
    "StreamEventType",
    "decode_event",
    # Transport
    "AdapterTimeout",
    "Transport",
    "ResponseStream",
    "HttpTransport",
    "HttpResponseStream",
    "StubTransport",
    "StubResponseStream",
    "StallingScript",
    # Errors
    "TransportError",
    "TransientTransportError",
    "FatalTransportError",
    "RequestTimeoutError",
    "NetworkError",
    "RateLimitError",
    "ServerError",
    "StreamInterruptedError",
    "AuthenticationError",
    "AccessDeniedError",
    "NotFoundError",
    "InvalidRequestError",
    "ContextLengthError",
    "QuotaExceededError",
    "ResponseFailedError",
    "IncompleteResponseError",
    "ConfigurationError",
    "RetriesExhaustedError",
    "ProtocolAnomaly",
    "error_from_status_code",
    "error_from_failure",
]
