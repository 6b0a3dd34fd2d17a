"""Bounded retry with exponential backoff for eventually-consistent lookups."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from app.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to look again and how long to wait in between."""

    attempts: int = 4
    base_delay: float = 0.5
    max_delay: float = 4.0
    multiplier: float = 2.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            attempts=settings.booking_lookup_attempts,
            base_delay=settings.booking_lookup_base_delay,
            max_delay=settings.booking_lookup_max_delay,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        return min(self.base_delay * self.multiplier ** (attempt - 1), self.max_delay)


async def retry_until_found(
    lookup: Callable[[], Awaitable[T | None]],
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    description: str = "lookup",
) -> T | None:
    """Call ``lookup`` until it returns something or the policy is exhausted.

    Args:
        lookup: Coroutine factory returning the result or None when not found
        policy: Retry policy
        sleep: Awaitable sleep, injectable for tests
        description: Label used in log lines

    Returns:
        The first non-None result, or None after the last attempt
    """
    for attempt in range(1, policy.attempts + 1):
        result = await lookup()
        if result is not None:
            return result

        if attempt < policy.attempts:
            delay = policy.delay_for(attempt)
            logger.info(
                f"{description}: not found (attempt {attempt}/{policy.attempts}), "
                f"retrying in {delay:.2f}s"
            )
            await sleep(delay)

    logger.warning(f"{description}: not found after {policy.attempts} attempts")
    return None
