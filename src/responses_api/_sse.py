"""Incremental Server-Sent Events decoding for streamed responses."""
from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field


@dataclass
class SSEEvent:
    """One dispatched event: its name and joined ``data`` lines."""

    event: str = "message"
    data: str = ""
    id: str = ""
    retry: int | None = None


@dataclass
class SSEDecoder:
    """Line-at-a-time decoder.

    ``:`` comment lines are skipped, a blank line dispatches whatever has
    accumulated, and one leading space is trimmed from each field value.
    Frames without any ``data`` line are never dispatched.
    """

    _pending: SSEEvent = field(default_factory=SSEEvent)
    _data: list[str] | None = None

    def feed(self, raw_line: str) -> SSEEvent | None:
        line = raw_line.rstrip("\r\n")
        if not line:
            return self.flush()
        if line[0] == ":":
            return None

        name, sep, value = line.partition(":")
        if sep and value[:1] == " ":
            value = value[1:]

        if name == "data":
            if self._data is None:
                self._data = []
            self._data.append(value)
        elif name == "event":
            self._pending.event = value
        elif name == "id":
            self._pending.id = value
        elif name == "retry" and value.isdigit():
            self._pending.retry = int(value)
        return None

    def flush(self) -> SSEEvent | None:
        """Dispatch the accumulated frame, if it carried data, and reset."""
        pending, data = self._pending, self._data
        self._pending, self._data = SSEEvent(), None
        if data is None:
            return None
        pending.data = "\n".join(data)
        return pending


async def parse_sse_lines(lines: AsyncIterator[str]) -> AsyncIterator[SSEEvent]:
    """Decode an async stream of text lines into :class:`SSEEvent` objects."""
    decoder = SSEDecoder()
    async for line in lines:
        event = decoder.feed(line)
        if event is not None:
            yield event
    # A final frame may arrive without its trailing blank line
    tail = decoder.flush()
    if tail is not None:
        yield tail
