# storybook/lib/retry.py
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from storybook.logger import get_logger

log = get_logger(__name__)

T = TypeVar("T")


def linear_backoff(step_seconds: float) -> Callable[[int], float]:
    """Delay after failed attempt n (1-based) is step_seconds * n."""
    return lambda attempt: step_seconds * attempt


def _retry_everything(exc: BaseException) -> bool:
    return True


@dataclass
class AttemptOutcome(Generic[T]):
    succeeded: bool
    attempts: int
    value: Optional[T] = None
    last_error: Optional[BaseException] = None


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retries for one unit of work. `limit()` applies `timeout_seconds`
    to the call a site wants bounded. `retry_on` decides whether a failure is
    worth another attempt; anything it rejects propagates to the caller.
    """

    max_attempts: int = 3
    backoff: Callable[[int], float] = field(default_factory=lambda: linear_backoff(2.0))
    timeout_seconds: Optional[float] = None
    retry_on: Callable[[BaseException], bool] = _retry_everything
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    async def limit(self, awaitable: Awaitable[T]) -> T:
        """Await `awaitable` under the per-call timeout, if one is set."""
        if not self.timeout_seconds:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)

    async def run(
        self,
        operation: Callable[[int], Awaitable[T]],
        *,
        label: str = "operation",
        on_attempt: Optional[Callable[[int], Awaitable[None]]] = None,
    ) -> AttemptOutcome[T]:
        """
        Call `operation(attempt)` until it returns or attempts run out.
        Never raises for retryable failures; exhaustion is reported in the outcome.
        """
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            if on_attempt is not None:
                await on_attempt(attempt)
            try:
                value = await operation(attempt)
                return AttemptOutcome(succeeded=True, attempts=attempt, value=value)
            except asyncio.TimeoutError as e:
                last_error = e
                log.warning(f"{label}: attempt {attempt}/{self.max_attempts} timed out after {self.timeout_seconds}s")
            except Exception as e:
                if not self.retry_on(e):
                    raise
                last_error = e
                log.warning(f"{label}: attempt {attempt}/{self.max_attempts} failed: {e}")

            if attempt < self.max_attempts:
                await self.sleep(self.backoff(attempt))

        log.error(f"{label}: giving up after {self.max_attempts} attempts")
        return AttemptOutcome(succeeded=False, attempts=self.max_attempts, last_error=last_error)
