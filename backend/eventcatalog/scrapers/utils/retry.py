"""Retry policy with pluggable backoff, shared by extraction and scheduling."""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Maps a 1-based failed attempt number to the seconds to wait before the next one
WaitFunction = Callable[[int], float]


def exponential_backoff(base: float) -> WaitFunction:
    """Delay after attempt n is ``base * 2**n`` (3s, 6s, 12s, ... for base 1.5)."""

    def wait(attempt: int) -> float:
        return base * (2 ** attempt)

    return wait


def fixed_delay(seconds: float) -> WaitFunction:
    """Same delay after every attempt."""

    def wait(attempt: int) -> float:
        return seconds

    return wait


def _always_retry(exc: BaseException) -> bool:
    return True


@dataclass
class RetryPolicy:
    """Bounded retry: max attempts, backoff function and retryable predicate.

    ``run`` drives an async callable through a tenacity loop. Callers that
    schedule their own retries (the scheduler) use ``should_retry`` and
    ``delay_for`` so both share one set of timing rules.
    """

    max_attempts: int
    wait: WaitFunction
    retryable: Callable[[BaseException], bool] = _always_retry
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    name: str = "retry"

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt (1-based)."""
        return self.wait(attempt)

    def should_retry(self, attempt: int, exc: Optional[BaseException] = None) -> bool:
        """Whether another attempt may follow the given failed attempt.

        Args:
            attempt: 1-based number of the attempt that just failed
            exc: Error raised by that attempt, if any

        Returns:
            True if attempts remain and the error is retryable
        """
        if attempt >= self.max_attempts:
            return False
        return exc is None or self.retryable(exc)

    async def run(self, fn: Callable[[], Awaitable[T]], **log_context: Any) -> T:
        """Await ``fn`` until it succeeds or the policy gives up.

        Non-retryable errors propagate immediately; the last error is
        re-raised once attempts are exhausted.
        """
        log = logger.bind(policy=self.name, **log_context)

        def _before_sleep(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            log.warning(
                "retry_scheduled",
                attempt=retry_state.attempt_number,
                max_attempts=self.max_attempts,
                delay_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
                error=str(exc) if exc else None,
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=lambda retry_state: self.delay_for(retry_state.attempt_number),
            retry=retry_if_exception(self.retryable),
            before_sleep=_before_sleep,
            sleep=self.sleep,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                result = await fn()
        return result
