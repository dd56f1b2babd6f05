"""
Retry policy for model-backed operations.

Retries only malformed/incomplete output (RetryableOutputError) with an
exponential, capped backoff.  Transport failures and anything unexpected
propagate on the first occurrence: another call would fail the same way.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from spec_forge.errors import PipelineCancelled, RetryableOutputError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


class RetryPolicy:
    """Stateless between runs; one instance is shared by every stage."""

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_base: float = 2.0,
        backoff_cap: float = 30.0,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings, sleep: SleepFn = asyncio.sleep) -> RetryPolicy:
        return cls(
            max_attempts=settings.max_retry_attempts,
            backoff_base=settings.backoff_base_seconds,
            backoff_cap=settings.backoff_cap_seconds,
            sleep=sleep,
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff after failed attempt *attempt* (1-based)."""
        return min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_cap)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        label: str = "operation",
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> T:
        """
        Await *operation* until it succeeds or attempts run out.

        On exhaustion the last retryable error is re-raised with its
        `attempts` attribute set to the number of calls made.
        """
        attempt = 0
        while True:
            attempt += 1
            if should_cancel is not None and should_cancel():
                raise PipelineCancelled(f"{label}: cancelled before attempt {attempt}")

            try:
                result = await operation()
            except RetryableOutputError as exc:
                exc.attempts = attempt
                if attempt >= self.max_attempts:
                    logger.error(
                        f"[RETRY] {label}: giving up after {attempt} attempts "
                        f"({type(exc).__name__}: {exc.details})"
                    )
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    f"[RETRY] {label}: attempt {attempt}/{self.max_attempts} failed "
                    f"({type(exc).__name__}: {exc.details}) — retrying in {delay:.1f}s"
                )
                await self._sleep(delay)
                continue

            if attempt > 1:
                logger.info(f"[RETRY] {label}: succeeded on attempt {attempt}")
            return result
