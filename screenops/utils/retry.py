"""Single fixed-delay retry for top-level processing steps."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_once(
    operation: Callable[[], Awaitable[T]],
    delay: float,
    label: str,
    before_retry: Callable[[], Awaitable[None]] | None = None,
) -> T:
    """Run `operation`; on failure wait `delay` seconds and run it exactly once more."""
    try:
        return await operation()
    except Exception as exc:
        logger.warning("%s failed (%s); retrying once in %.2fs", label, exc, delay)
    if before_retry is not None:
        await before_retry()
    await asyncio.sleep(delay)
    return await operation()
