"""Cooperative cancellation of an in-flight run."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from responses_api.events import StreamEvent
from responses_api.transport import ResponseStream
from turn_loop.tracker import CallTracker

logger = logging.getLogger(__name__)


class CancellationController:
    """Lets a caller outside the consuming task stop the current turn.

    :meth:`cancel` aborts the bound transport stream, stops event delivery,
    and marks the bound tracker's pending calls cancelled. It never blocks
    and never raises; the consuming task notices the signal at its next
    suspension point and settles the turn as cancelled.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._tracker: CallTracker | None = None
        self._stream: ResponseStream | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def bind(self, tracker: CallTracker) -> None:
        """Attach the tracker of the turn now being attempted."""
        self._tracker = tracker
        self._stream = None
        if self.cancelled:
            tracker.mark_all_cancelled()

    def attach(self, stream: ResponseStream) -> None:
        self._stream = stream
        if self.cancelled:
            stream.abort()

    def detach(self) -> None:
        self._stream = None

    def cancel(self) -> bool:
        """Request cancellation. Returns False if already requested."""
        if self._event.is_set():
            return False
        if self._stream is not None:
            self._stream.abort()
        self._event.set()
        if self._tracker is not None:
            moved = self._tracker.mark_all_cancelled()
            if moved:
                logger.info("Cancelled %d pending function call(s)", moved)
        return True

    async def race(self, task: asyncio.Future[Any]) -> bool:
        """Wait for *task* or cancellation. True when the task won.

        A cancellation observed at the same time as the task finishing
        counts as cancellation.
        """
        if self.cancelled:
            return False
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
        return task.done() and not self.cancelled

    async def events(self, stream: ResponseStream) -> AsyncIterator[StreamEvent]:
        """Yield stream events until the stream ends or cancellation."""
        iterator = stream.__aiter__()
        step: asyncio.Future[StreamEvent] | None = None
        try:
            while True:
                step = asyncio.ensure_future(_next(iterator))
                if not await self.race(step):
                    await discard(step)
                    return
                try:
                    event = step.result()
                except StopAsyncIteration:
                    return
                yield event
        finally:
            # The iterator cannot be closed while a read is still running on it
            if step is not None and not step.done():
                await discard(step)
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    async def sleep(self, delay: float) -> bool:
        """Back off for *delay* seconds. True if cancelled meanwhile."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True


async def discard(task: asyncio.Future[Any]) -> None:
    """Cancel a task whose result is no longer wanted and wait for it."""
    if not task.done():
        task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception as exc:
        logger.debug("Discarded task raised: %r", exc)


async def _next(iterator: AsyncIterator[StreamEvent]) -> StreamEvent:
    return await iterator.__anext__()
