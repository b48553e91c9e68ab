"""Time-boxed awaits whose work keeps running detached past the deadline."""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, NamedTuple

logger = logging.getLogger(__name__)

# Strong references to tasks that outlived their time box
_detached: set[asyncio.Task] = set()


class TimeBoxResult(NamedTuple):
    completed: bool
    value: Any = None


def _on_detached_done(task: asyncio.Task) -> None:
    _detached.discard(task)
    if task.cancelled():
        logger.warning("Background task %s was cancelled", task.get_name())
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background task %s failed", task.get_name(), exc_info=exc)
    else:
        logger.info("Background task %s finished after its time box", task.get_name())


async def run_time_boxed(coro: Coroutine, timeout: float, name: str) -> TimeBoxResult:
    """
    Race `coro` against `timeout` seconds without cancelling it.

    If it finishes in time its result is returned and its exception, if any,
    is raised here. Otherwise the task keeps running detached; its outcome
    only reaches the log.
    """
    task = asyncio.create_task(coro, name=name)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        # The caller went away; the work itself is left running
        if not task.done():
            _detach(task)
        raise
    if task in done:
        return TimeBoxResult(True, task.result())

    logger.warning("%s did not finish within %.2fs; continuing in background", name, timeout)
    _detach(task)
    return TimeBoxResult(False)


def _detach(task: asyncio.Task) -> None:
    _detached.add(task)
    task.add_done_callback(_on_detached_done)


def detached_task_count() -> int:
    return len(_detached)


async def drain_detached_tasks(timeout: float) -> None:
    """Give detached tasks a last chance to finish (used at shutdown)."""
    if not _detached:
        return
    logger.info("Waiting up to %.1fs for %d background task(s)", timeout, len(_detached))
    await asyncio.wait(set(_detached), timeout=timeout)
