"""
Detached background tasks.

Persistence after a streamed answer must never hold up the response, so it
runs as a fire-and-forget asyncio task. The event loop only keeps weak
references to tasks, so live ones are tracked here until they finish.
"""

import asyncio
import logging
from typing import Coroutine, Set

logger = logging.getLogger(__name__)

_tasks: Set[asyncio.Task] = set()


def spawn_background(coro: Coroutine, name: str = None) -> asyncio.Task:
    """Start `coro` without awaiting it. Exceptions are logged, never raised."""
    task = asyncio.create_task(coro, name=name)
    _tasks.add(task)
    task.add_done_callback(_on_done)
    return task


def _on_done(task: asyncio.Task) -> None:
    _tasks.discard(task)
    if task.cancelled():
        logger.warning(f"Background task {task.get_name()} was cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}", exc_info=exc)


def pending_count() -> int:
    return len(_tasks)


async def drain_background_tasks(timeout: float = 30.0) -> None:
    """Wait for in-flight background work, e.g. on application shutdown."""
    if not _tasks:
        return
    logger.info(f"Waiting for {len(_tasks)} background task(s) to finish...")
    done, pending = await asyncio.wait(set(_tasks), timeout=timeout)
    if pending:
        logger.warning(f"{len(pending)} background task(s) still running after {timeout}s")
