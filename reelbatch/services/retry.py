"""Retry-with-backoff and cooperative cancellation primitives."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from ..config import Settings
from ..errors import ExhaustedRetries, OperationCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]


class CancellationToken:
    """Signal shared by a run and everything it awaits."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled()

    async def sleep(self, delay: float) -> None:
        """Wait ``delay`` seconds unless the token fires first."""

        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise OperationCancelled()


class RetryExecutor:
    """Run an async operation with bounded retries and exponential backoff.

    Attempt ``k`` that fails (other than the last) is followed by a wait of
    ``initial_delay * backoff_factor ** (k - 1)`` seconds. Every exception is
    retried the same way; once ``max_attempts`` is spent the last failure is
    wrapped in :class:`ExhaustedRetries`.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 2.0,
        backoff_factor: float = 1.5,
        *,
        sleep: Sleeper | None = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if initial_delay < 0:
            raise ValueError("initial_delay must not be negative")
        if backoff_factor < 1:
            raise ValueError("backoff_factor must be at least 1")
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.backoff_factor = backoff_factor
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, *, sleep: Sleeper | None = None) -> "RetryExecutor":
        return cls(
            max_attempts=settings.retry_max_attempts,
            initial_delay=settings.retry_initial_delay,
            backoff_factor=settings.retry_backoff_factor,
            sleep=sleep,
        )

    def delays(self) -> list[float]:
        """Return the waits a fully failing call would observe."""

        return [
            self.initial_delay * self.backoff_factor ** attempt
            for attempt in range(self.max_attempts - 1)
        ]

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        token: CancellationToken | None = None,
        label: str = "operation",
    ) -> T:
        delay = self.initial_delay
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            if token is not None:
                token.raise_if_cancelled()
            try:
                return await operation()
            except OperationCancelled:
                raise
            except Exception as exc:
                last_error = exc
                if attempt >= self.max_attempts:
                    break
                logger.info(
                    "Attempt %s/%s for %s failed (%s). Retrying in %.1fs",
                    attempt,
                    self.max_attempts,
                    label,
                    exc.__class__.__name__,
                    delay,
                )
                await self._wait(delay, token)
                delay *= self.backoff_factor

        raise ExhaustedRetries(self.max_attempts, last_error) from last_error

    async def _wait(self, delay: float, token: CancellationToken | None) -> None:
        if self._sleep is not None:
            await self._sleep(delay)
            if token is not None:
                token.raise_if_cancelled()
        elif token is not None:
            await token.sleep(delay)
        else:
            await asyncio.sleep(delay)
