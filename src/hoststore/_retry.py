"""Bounded linear-backoff retry around channel calls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from hoststore._translate import translate_error
from hoststore.config import RetryConfig

_logger = logging.getLogger(__name__)

T = TypeVar("T")

_DEFAULT_RETRY = RetryConfig()


async def with_retry(
    op: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    description: str = "channel call",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run *op*, retrying transient failures.

    Every failure is translated to a :class:`StorageError`.  Kinds listed in
    ``config.non_retryable_kinds`` are raised after the first attempt.  Other
    kinds wait ``base_delay * attempt`` seconds and try again, up to
    ``max_attempts`` attempts in total; the last error is then raised.

    Cancellation is never retried.
    """
    config = config or _DEFAULT_RETRY
    attempt = 0

    while True:
        attempt += 1
        try:
            return await op()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = translate_error(exc)
            if error is not exc:
                error.__cause__ = exc

            if not config.is_retryable(error.kind):
                _logger.debug("%s failed with %s, not retrying", description, error.kind.value)
                raise error

            if attempt >= config.max_attempts:
                _logger.debug("%s gave up after %d attempts", description, attempt)
                raise error

            delay = config.base_delay * attempt
            _logger.info(
                "%s failed with %s (attempt %d/%d), retrying in %.1fs",
                description,
                error.kind.value,
                attempt,
                config.max_attempts,
                delay,
            )
            await sleep(delay)
