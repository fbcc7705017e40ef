"""Outbound HTTP retry helper used by the Line integration."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})
MAX_RETRY_AFTER_SECONDS = 10.0


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential backoff with up to 50% jitter; 0 when base_delay is 0."""
    delay = min(max_delay, base_delay * (2**attempt))
    return delay + random.uniform(0, delay / 2) if delay else 0.0


def retry_after_seconds(response: httpx.Response) -> float | None:
    """Numeric Retry-After header, capped. HTTP-date values are ignored."""
    raw = response.headers.get("Retry-After")
    if not raw:
        return None
    try:
        return min(max(float(raw), 0.0), MAX_RETRY_AFTER_SECONDS)
    except ValueError:
        return None


async def request_with_retries(
    send: Callable[[], Awaitable[httpx.Response]],
    *,
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
) -> httpx.Response:
    """
    Call `send` until it returns a non-retryable response or attempts run out.

    Transport errors are retried and re-raised on the last attempt. The last
    response is returned as-is even when its status is retryable.
    """
    for attempt in range(max_attempts):
        last_attempt = attempt == max_attempts - 1
        try:
            response = await send()
        except httpx.TransportError as exc:
            if last_attempt:
                raise
            logger.warning("Outbound request failed (%s), retrying", type(exc).__name__)
            delay = backoff_delay(attempt, base_delay, max_delay)
        else:
            if response.status_code not in RETRYABLE_STATUSES or last_attempt:
                return response
            logger.warning("Outbound request returned %s, retrying", response.status_code)
            delay = backoff_delay(attempt, base_delay, max_delay)
            if base_delay:
                delay = retry_after_seconds(response) or delay

        if delay:
            await asyncio.sleep(delay)

    raise RuntimeError("max_attempts must be at least 1")
