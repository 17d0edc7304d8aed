"""Tests for the HTTP and in-memory transports."""
from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from responses_api.errors import (
    AuthenticationError,
    ConfigurationError,
    NetworkError,
    QuotaExceededError,
    RateLimitError,
    RequestTimeoutError,
    ServerError,
)
from responses_api.events import StreamEvent, StreamEventType
from responses_api.items import FunctionCall, MessageItem
from responses_api.request import ResponsesRequest
from responses_api.transport import (
    HttpTransport,
    ResponseStream,
    StallingScript,
    StubTransport,
    Transport,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_transport(handler) -> HttpTransport:
    """Create a transport wired to a mock HTTP transport."""
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="https://api.openai.com",
    )
    return HttpTransport(api_key="test-key", client=client)


def _sse_body(events: list[tuple[str, dict[str, Any]]]) -> str:
    lines: list[str] = []
    for event_type, data in events:
        lines.append(f"event: {event_type}")
        lines.append(f"data: {json.dumps(data)}")
        lines.append("")
    return "\n".join(lines) + "\n"


def _sse_response(body: str) -> httpx.Response:
    return httpx.Response(200, content=body.encode(), headers={"content-type": "text/event-stream"})


def _request(**kwargs: Any) -> ResponsesRequest:
    return ResponsesRequest.build("gpt-test", "", [MessageItem.user("hi")], **kwargs)


async def _drain(stream: ResponseStream) -> list[StreamEvent]:
    try:
        return [event async for event in stream]
    finally:
        await stream.aclose()


_COMPLETED_TURN = [
    ("response.created", {"type": "response.created", "response": {"id": "resp_1"}}),
    ("response.output_item.done", {
        "type": "response.output_item.done",
        "item": {"type": "function_call", "call_id": "c1", "name": "shell", "arguments": "{}"},
    }),
    ("response.completed", {"type": "response.completed", "response": {"id": "resp_1"}}),
]


# ===========================================================================
# HttpTransport
# ===========================================================================


class TestHttpTransport:
    @pytest.mark.asyncio
    async def test_posts_to_responses_endpoint(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _sse_response(_sse_body(_COMPLETED_TURN))

        transport = _make_transport(handler)
        await _drain(await transport.create(_request(previous_response_id="resp_0")))

        assert seen[0].method == "POST"
        assert seen[0].url.path == "/v1/responses"
        body = json.loads(seen[0].content)
        assert body["stream"] is True
        assert body["previous_response_id"] == "resp_0"
        assert body["input"][0]["role"] == "user"

    @pytest.mark.asyncio
    async def test_decodes_stream_events(self) -> None:
        transport = _make_transport(lambda request: _sse_response(_sse_body(_COMPLETED_TURN)))
        events = await _drain(await transport.create(_request()))

        assert [e.type for e in events] == [
            StreamEventType.CREATED,
            StreamEventType.OUTPUT_ITEM_DONE,
            StreamEventType.COMPLETED,
        ]
        assert events[1].item == FunctionCall(call_id="c1", name="shell", arguments="{}")
        assert events[2].response_id == "resp_1"

    @pytest.mark.asyncio
    async def test_skips_done_sentinel_and_malformed_frames(self) -> None:
        body = (
            "event: response.output_item.done\ndata: {broken\n\n"
            + _sse_body(_COMPLETED_TURN[2:])
            + "data: [DONE]\n\n"
        )
        transport = _make_transport(lambda request: _sse_response(body))
        events = await _drain(await transport.create(_request()))

        assert [e.type for e in events] == [StreamEventType.COMPLETED]

    @pytest.mark.asyncio
    async def test_aborted_stream_yields_nothing(self) -> None:
        transport = _make_transport(lambda request: _sse_response(_sse_body(_COMPLETED_TURN)))
        stream = await transport.create(_request())
        stream.abort()
        stream.abort()

        assert await _drain(stream) == []
        assert stream.aborted

    @pytest.mark.asyncio
    async def test_401_raises_authentication_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"message": "Invalid key", "code": "invalid_api_key"}})

        transport = _make_transport(handler)
        with pytest.raises(AuthenticationError, match="Invalid key") as exc_info:
            await transport.create(_request())
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_429_carries_retry_after(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                429,
                json={"error": {"message": "Slow down", "type": "rate_limit_exceeded"}},
                headers={"retry-after": "3"},
            )

        transport = _make_transport(handler)
        with pytest.raises(RateLimitError) as exc_info:
            await transport.create(_request())
        assert exc_info.value.retry_after == 3.0

    @pytest.mark.asyncio
    async def test_429_insufficient_quota_is_fatal(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"error": {"message": "Out of credit", "code": "insufficient_quota"}})

        transport = _make_transport(handler)
        with pytest.raises(QuotaExceededError):
            await transport.create(_request())

    @pytest.mark.asyncio
    async def test_non_json_error_body(self) -> None:
        transport = _make_transport(lambda request: httpx.Response(502, text="Bad gateway"))
        with pytest.raises(ServerError, match="Bad gateway"):
            await transport.create(_request())

    @pytest.mark.asyncio
    async def test_timeout_maps_to_request_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        transport = _make_transport(handler)
        with pytest.raises(RequestTimeoutError) as exc_info:
            await transport.create(_request())
        assert isinstance(exc_info.value.cause, httpx.ReadTimeout)

    @pytest.mark.asyncio
    async def test_connect_error_maps_to_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        transport = _make_transport(handler)
        with pytest.raises(NetworkError):
            await transport.create(_request())

    def test_empty_api_key_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            HttpTransport(api_key="")

    def test_from_env_requires_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            HttpTransport.from_env()

    def test_from_env_builds_authorised_client(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("OPENAI_BASE_URL", "https://proxy.example/")
        monkeypatch.setenv("OPENAI_ORGANIZATION", "org-1")
        transport = HttpTransport.from_env()

        assert transport._client.headers["authorization"] == "Bearer sk-env"
        assert transport._client.headers["openai-organization"] == "org-1"
        assert transport._client.base_url.host == "proxy.example"

    def test_satisfies_transport_protocol(self) -> None:
        assert isinstance(HttpTransport(api_key="k"), Transport)


# ===========================================================================
# StubTransport
# ===========================================================================


class TestStubTransport:
    @pytest.mark.asyncio
    async def test_replays_scripts_in_order(self) -> None:
        transport = StubTransport([
            [StreamEvent.completed("r1")],
            [StreamEvent.completed("r2")],
        ])
        first = await _drain(await transport.create(_request()))
        second = await _drain(await transport.create(_request()))

        assert first[0].response_id == "r1"
        assert second[0].response_id == "r2"
        assert transport.call_count == 2
        assert all(stream.closed for stream in transport.streams)

    @pytest.mark.asyncio
    async def test_exhausted_scripts_give_empty_stream(self) -> None:
        transport = StubTransport()
        assert await _drain(await transport.create(_request())) == []

    @pytest.mark.asyncio
    async def test_exception_script_raised_from_create(self) -> None:
        transport = StubTransport([RequestTimeoutError("slow")])
        with pytest.raises(RequestTimeoutError):
            await transport.create(_request())
        assert transport.call_count == 1
        assert transport.streams == []

    @pytest.mark.asyncio
    async def test_exception_event_raised_mid_stream(self) -> None:
        transport = StubTransport([[StreamEvent.completed("r1"), NetworkError("reset")]])
        stream = await transport.create(_request())
        seen: list[StreamEvent] = []
        with pytest.raises(NetworkError):
            async for event in stream:
                seen.append(event)
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_stalling_stream_ends_on_abort(self) -> None:
        call = FunctionCall(call_id="mid_call", name="shell")
        transport = StubTransport([StallingScript([StreamEvent.output_item_done(call)])])
        stream = await transport.create(_request())

        seen: list[StreamEvent] = []
        async for event in stream:
            seen.append(event)
            stream.abort()

        assert seen[0].item == call
        assert stream.abort_count == 1

    @pytest.mark.asyncio
    async def test_records_request_bodies(self) -> None:
        transport = StubTransport()
        await transport.create(_request(previous_response_id="resp_9"))
        assert transport.bodies[0]["previous_response_id"] == "resp_9"
