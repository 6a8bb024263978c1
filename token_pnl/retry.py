"""
Retry policy with linear backoff and a keep-best reducer.

Used for upstreams that answer "successfully" with incomplete data: every
attempt's result is offered to ``keep`` which decides the best result so far,
and ``done`` decides whether the latest result is good enough to stop early.
When the ceiling is reached the best result is returned instead of an error.
Only when every attempt raised is the last exception re-raised.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Attempted(Generic[T]):
    value: T
    attempts: int


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    delay: float = 1.0
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep

    def __post_init__(self):
        # at least one attempt, so a run always ends with a result or an error
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    def backoff(self, attempt: int) -> float:
        return attempt * self.delay

    async def run(
        self,
        call: Callable[[], Awaitable[T]],
        *,
        done: Callable[[T, Optional[T]], bool],
        keep: Callable[[Optional[T], T], T],
        label: str = "call",
    ) -> Attempted[T]:
        best: Optional[T] = None
        have_best = False
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await call()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
                logger.warning(f"{label} failed (attempt {attempt}/{self.max_attempts}): {e}")
            else:
                finished = done(result, best if have_best else None)
                best = keep(best if have_best else None, result)
                have_best = True
                if finished:
                    return Attempted(best, attempt)
                logger.warning(f"{label} incomplete (attempt {attempt}/{self.max_attempts}), retrying...")

            if attempt < self.max_attempts:
                await self.sleep(self.backoff(attempt))

        if have_best:
            return Attempted(best, self.max_attempts)
        raise last_error
