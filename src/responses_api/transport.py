"""Transports: issue a request and hand back a cancellable event stream."""
from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import httpx

from responses_api._sse import parse_sse_lines
from responses_api.errors import (
    ConfigurationError,
    NetworkError,
    ProtocolAnomaly,
    RequestTimeoutError,
    error_from_status_code,
)
from responses_api.events import StreamEvent, decode_event
from responses_api.request import ResponsesRequest

logger = logging.getLogger(__name__)


@runtime_checkable
class ResponseStream(Protocol):
    """A live, ordered stream of events for one in-flight request."""

    def __aiter__(self) -> AsyncIterator[StreamEvent]: ...

    def abort(self) -> None:
        """Ask the stream to stop. Non-blocking and idempotent."""
        ...

    async def aclose(self) -> None:
        """Release the underlying connection."""
        ...


@runtime_checkable
class Transport(Protocol):
    """Anything that can turn a request into a :class:`ResponseStream`."""

    async def create(self, request: ResponsesRequest) -> ResponseStream: ...


@dataclass(frozen=True)
class AdapterTimeout:
    """Low-level timeout settings for the HTTP transport."""

    connect: float = 5.0
    request: float = 60.0
    stream_read: float = 300.0


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


class HttpResponseStream:
    """Event stream backed by a streaming :class:`httpx.Response`."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._aborted = False
        self._closed = False

    @property
    def aborted(self) -> bool:
        return self._aborted

    def abort(self) -> None:
        self._aborted = True

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._response.aclose()

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        try:
            async for sse in parse_sse_lines(self._response.aiter_lines()):
                if self._aborted:
                    return
                if not sse.data or sse.data == "[DONE]":
                    continue
                try:
                    event = decode_event(sse.event, sse.data)
                except ProtocolAnomaly as exc:
                    logger.warning("Skipping undecodable stream event: %s", exc)
                    continue
                yield event
        except httpx.TimeoutException as exc:
            if self._aborted:
                return
            raise RequestTimeoutError(f"Stream timed out: {exc}", cause=exc) from exc
        except (httpx.TransportError, httpx.StreamError) as exc:
            if self._aborted:
                return
            raise NetworkError(f"Network error during stream: {exc}", cause=exc) from exc


class HttpTransport:
    """Transport for the Responses API over :mod:`httpx`."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com",
        organization: str | None = None,
        timeout: AdapterTimeout | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("An API key is required")
        t = timeout or AdapterTimeout()
        headers: dict[str, str] = {
            "authorization": f"Bearer {api_key}",
            "content-type": "application/json",
            "accept": "text/event-stream",
        }
        if organization:
            headers["openai-organization"] = organization

        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(
                connect=t.connect,
                read=t.stream_read,
                write=t.request,
                pool=t.connect,
            ),
        )

    @classmethod
    def from_env(cls, *, timeout: AdapterTimeout | None = None) -> HttpTransport:
        """Create a transport from ``OPENAI_API_KEY`` and friends."""
        api_key = os.environ.get("OPENAI_API_KEY", "")
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")
        return cls(
            api_key=api_key,
            base_url=os.environ.get("OPENAI_BASE_URL", "https://api.openai.com"),
            organization=os.environ.get("OPENAI_ORGANIZATION") or None,
            timeout=timeout,
        )

    async def create(self, request: ResponsesRequest) -> HttpResponseStream:
        """POST the request and return the open event stream.

        Raises a transport error for non-2xx statuses or connection failures.
        """
        body = request.to_body()
        try:
            http_request = self._client.build_request("POST", "/v1/responses", json=body)
            response = await self._client.send(http_request, stream=True)
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(f"Request timed out: {exc}", cause=exc) from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Network error: {exc}", cause=exc) from exc

        if response.status_code >= 300:
            try:
                await response.aread()
            finally:
                await response.aclose()
            raise self._translate_error(response)

        return HttpResponseStream(response)

    def _translate_error(self, response: httpx.Response) -> Exception:
        """Translate an HTTP error response to a transport error."""
        try:
            body = response.json()
            error_info = body.get("error") or {}
            message = error_info.get("message", response.text)
            error_code = error_info.get("code") or error_info.get("type")
        except Exception:
            body = None
            message = response.text
            error_code = None

        retry_after = None
        if "retry-after" in response.headers:
            try:
                retry_after = float(response.headers["retry-after"])
            except (ValueError, TypeError):
                pass

        return error_from_status_code(
            response.status_code,
            message,
            error_code=error_code,
            raw=body,
            retry_after=retry_after,
        )

    async def aclose(self) -> None:
        await self._client.aclose()


# ---------------------------------------------------------------------------
# In-memory transport for tests
# ---------------------------------------------------------------------------


@dataclass
class StallingScript:
    """Yield ``events`` and then block until the stream is aborted."""

    events: Sequence[StreamEvent | Exception] = ()


@dataclass
class StubResponseStream:
    """Scripted stream. Exceptions in ``events`` are raised when reached."""

    events: Sequence[StreamEvent | Exception] = ()
    stall: bool = False
    delay: float = 0.0
    abort_count: int = 0
    closed: bool = False
    _abort_event: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def aborted(self) -> bool:
        return self._abort_event.is_set()

    def abort(self) -> None:
        self.abort_count += 1
        self._abort_event.set()

    async def aclose(self) -> None:
        self.closed = True

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        for event in self.events:
            # Yield control so a concurrent cancel can interleave
            await asyncio.sleep(self.delay)
            if self.aborted:
                return
            if isinstance(event, Exception):
                raise event
            yield event
        if self.stall:
            await self._abort_event.wait()


class StubTransport:
    """Transport that replays scripts in order and records every request.

    Each script is a list of events, a :class:`StallingScript`, or an
    exception raised from :meth:`create`. When the scripts run out, an
    empty stream is returned.
    ``connect_delay`` holds :meth:`create` open after the request is
    recorded, standing in for a slow connection.
    """

    def __init__(
        self,
        scripts: Sequence[Sequence[StreamEvent | Exception] | StallingScript | Exception] | None = None,
        delay: float = 0.0,
        connect_delay: float = 0.0,
    ) -> None:
        self._scripts = list(scripts or [])
        self._delay = delay
        self.connect_delay = connect_delay
        self.requests: list[ResponsesRequest] = []
        self.streams: list[StubResponseStream] = []

    @property
    def bodies(self) -> list[dict[str, Any]]:
        return [r.to_body() for r in self.requests]

    @property
    def call_count(self) -> int:
        return len(self.requests)

    async def create(self, request: ResponsesRequest) -> StubResponseStream:
        self.requests.append(request)
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        script = self._scripts.pop(0) if self._scripts else []
        if isinstance(script, Exception):
            raise script
        if isinstance(script, StallingScript):
            stream = StubResponseStream(events=list(script.events), stall=True, delay=self._delay)
        else:
            stream = StubResponseStream(events=list(script), delay=self._delay)
        self.streams.append(stream)
        return stream
