"""
Byte-stream tee.

Lets one upstream response feed two readers at their own pace: the HTTP
response going back to the browser and the background task that rebuilds
the full answer for persistence. A single pump task reads the upstream
body and copies each chunk into a queue per branch, so a reader that is
cancelled (the browser going away) never interrupts the upstream read the
other branch depends on.
"""

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from studymind.services.ai_gateway import NoStreamError, UpstreamStream

logger = logging.getLogger(__name__)


class _EndOfStream:
    """Queue marker placed after the last chunk, carrying the upstream error if any."""

    def __init__(self, error: Optional[BaseException] = None):
        self.error = error


class StreamSplitter:
    """
    Duplicate an async byte iterator into `branches` independent iterators.

    The upstream is read by one pump task, started when the first branch is
    iterated, and drained to the end even if every reader stops early.
    Upstream errors are delivered to every branch after the chunks that
    preceded them. `on_exhausted` runs once, after the source ends or fails
    and before any branch observes the end.
    """

    def __init__(
        self,
        source: Optional[AsyncIterator[bytes]],
        branches: int = 2,
        on_exhausted: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        if source is None:
            raise NoStreamError()
        if branches < 1:
            raise ValueError("branches must be >= 1")

        self._source = source.__aiter__()
        self._branches = branches
        self._queues: List[asyncio.Queue] = []
        self._pump_task: Optional[asyncio.Task] = None
        self._on_exhausted = on_exhausted
        self._handed_out = 0

    def branch(self) -> AsyncIterator[bytes]:
        """Return the next unclaimed branch."""
        if self._handed_out >= self._branches:
            raise RuntimeError("All branches have already been claimed")
        index = self._handed_out
        self._handed_out += 1
        return self._iterate(index)

    def split(self) -> List[AsyncIterator[bytes]]:
        """Claim every remaining branch at once."""
        return [self.branch() for _ in range(self._branches - self._handed_out)]

    def _start(self) -> None:
        if self._pump_task is not None:
            return
        self._queues = [asyncio.Queue() for _ in range(self._branches)]
        self._pump_task = asyncio.get_running_loop().create_task(self._pump(), name="stream-splitter-pump")

    def _broadcast(self, item) -> None:
        for queue in self._queues:
            queue.put_nowait(item)

    async def _pump(self) -> None:
        error: Optional[BaseException] = None
        try:
            async for chunk in self._source:
                self._broadcast(chunk)
        except asyncio.CancelledError:
            error = NoStreamError("Upstream stream was cancelled")
            raise
        except Exception as e:
            logger.warning(f"Upstream stream failed: {e}")
            error = e
        finally:
            await self._finish()
            self._broadcast(_EndOfStream(error))

    async def _finish(self) -> None:
        if self._on_exhausted is None:
            return
        callback, self._on_exhausted = self._on_exhausted, None
        try:
            await callback()
        except Exception as e:
            logger.warning(f"Error closing upstream stream: {e}")

    async def _iterate(self, index: int) -> AsyncIterator[bytes]:
        self._start()
        queue = self._queues[index]
        while True:
            item = await queue.get()
            if isinstance(item, _EndOfStream):
                if item.error is not None:
                    raise item.error
                return
            yield item


def relay_stream(upstream: UpstreamStream) -> AsyncIterator[bytes]:
    """
    Forward an upstream body unchanged, closing it when the reader finishes.

    Used when nothing needs a second copy of the stream.

    Raises:
        NoStreamError: Immediately, if the upstream response has no body
    """
    if upstream.body is None:
        raise NoStreamError()

    async def _relay() -> AsyncIterator[bytes]:
        try:
            async for chunk in upstream.body:
                yield chunk
        finally:
            await upstream.aclose()

    return _relay()


def tee_stream(upstream: UpstreamStream) -> List[AsyncIterator[bytes]]:
    """Split an upstream body into (client, persistence) branches."""
    splitter = StreamSplitter(upstream.body, branches=2, on_exhausted=upstream.aclose)
    return splitter.split()
