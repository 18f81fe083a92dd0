import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class PollResult(Generic[T]):
    value: Optional[T]
    ok: bool
    attempts: int


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded polling: call a fetcher up to `max_attempts` times, waiting `delay`
    seconds between attempts, until `predicate` accepts the fetched value.

    Running out of attempts is not an error, the caller gets `ok=False` and the
    last value fetched.
    """
    max_attempts: int
    delay: float
    predicate: Callable[[Any], bool] = bool
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay < 0:
            raise ValueError("delay must be non-negative")

    async def poll(self, fetch: Callable[[], Awaitable[T]], label: str = "poll") -> PollResult[T]:
        value = None
        for attempt in range(1, self.max_attempts + 1):
            value = await fetch()
            if self.predicate(value):
                return PollResult(value=value, ok=True, attempts=attempt)
            if attempt < self.max_attempts:
                logger.info("%s not ready (attempt %d/%d), retrying in %.1fs", label, attempt, self.max_attempts, self.delay)
                await self.sleep(self.delay)
        logger.info("%s still not ready after %d attempts", label, self.max_attempts)
        return PollResult(value=value, ok=False, attempts=self.max_attempts)
