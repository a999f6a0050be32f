from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    attempts: int = 3,
    delay_seconds: float = 0.0,
    retry_if: Callable[[BaseException], bool] | None = None,
) -> T:
    """Await ``operation()`` until it succeeds or ``attempts`` runs are used up.

    Attempts run one after another, never concurrently. The wait before the
    next attempt is ``delay_seconds * attempt``. When ``retry_if`` returns
    False for an error, that error is raised at once; otherwise the last
    error is raised unchanged after the final attempt.
    """
    if attempts < 1:
        raise ValueError("attempts must be 1 or greater")

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as error:
            if retry_if is not None and not retry_if(error):
                raise
            if attempt >= attempts:
                logger.info("Giving up after %d attempts: %s", attempts, error)
                raise
            logger.debug("Attempt %d/%d failed: %s", attempt, attempts, error)
            if delay_seconds > 0:
                await asyncio.sleep(delay_seconds * attempt)

    raise AssertionError("unreachable")
