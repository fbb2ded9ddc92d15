"""HTTP 429 backoff helper for gateway calls."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from core.errors import TransientFetchFailure

T = TypeVar("T")

log = logging.getLogger("longshort.rate_limit")

MAX_DELAY_SEC = 30.0


class RateLimitError(TransientFetchFailure):
    """Raised when rate-limit retries are exhausted."""


def _status_code(exc: BaseException) -> int | None:
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(getattr(exc, "response", None), "status_code", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _retry_after(exc: BaseException) -> float | None:
    headers = getattr(exc, "headers", None)
    if headers is None:
        headers = getattr(getattr(exc, "response", None), "headers", None)
    if not hasattr(headers, "get"):
        return None
    value = headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


async def backoff_request(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 5,
    *,
    base_delay: float = 1.0,
) -> T:
    """Execute an async HTTP call, backing off on HTTP 429 responses.

    Any other error propagates on the first attempt.
    """

    delay = base_delay
    for attempt in range(max_retries + 1):
        try:
            return await fn()
        except Exception as exc:
            if _status_code(exc) != 429:
                raise
            retry_after = _retry_after(exc)
            if retry_after is not None:
                delay = max(delay, retry_after)
            if attempt == max_retries:
                raise RateLimitError("Max retries exceeded after 429 responses") from exc
            log.warning("rate_limit.backoff", extra={"attempt": attempt + 1, "delay": delay})
            await asyncio.sleep(delay)
            delay = min(delay * 2, MAX_DELAY_SEC)
    raise RateLimitError("Max retries exceeded after 429 responses")


__all__ = ["RateLimitError", "backoff_request"]
