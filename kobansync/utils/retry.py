from __future__ import annotations

import asyncio
import random


def compute_backoff(attempt: int, base: float = 2.0, jitter: float = 0.0) -> float:
    """Compute exponential backoff, ``base ** attempt`` plus optional jitter."""
    delay = base ** attempt
    if jitter:
        delay += random.uniform(0, jitter)
    return delay


async def sleep_before_retry(attempt: int, base: float = 2.0) -> None:
    """Sleep for the computed backoff delay before the next attempt."""
    delay = compute_backoff(attempt, base)
    if delay > 0:
        await asyncio.sleep(delay)
