"""Retry and deadline policy applied around language-generation calls.

Updates:
    v0.1.0 - 2025-11-09 - Moved tenacity retries out of the gateway into a per-run policy.
    v0.1.1 - 2026-10-19 - Client exceptions outside the error hierarchy become typed generation errors.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    stop_any,
    wait_exponential,
)

from .errors import (
    DeadlineExceededError,
    GenerationError,
    GenerationTimeoutError,
    GenerationTransportError,
    PlanGenerationError,
)

T = TypeVar("T")

logger = logging.getLogger(__name__)

_RETRYABLE = (GenerationTimeoutError, GenerationTransportError)


class CallPolicy:
    """Bounds every generation call of one pipeline run.

    Each call gets the per-call timeout, clipped to what is left of the run
    deadline. Failed calls are retried up to ``max_attempts`` times, and no
    attempt starts once the deadline has passed.
    """

    def __init__(
        self,
        *,
        call_timeout: float = 60.0,
        max_attempts: int = 1,
        wait_seconds: float = 0.0,
        deadline_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._call_timeout = call_timeout
        self._max_attempts = max(1, int(max_attempts))
        self._wait_seconds = max(0.0, wait_seconds)
        self._clock = clock
        self._sleep = sleep
        self._deadline = (
            clock() + deadline_seconds if deadline_seconds is not None else None
        )

    def remaining(self) -> Optional[float]:
        """Return seconds left before the deadline, or ``None`` when unbounded."""

        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def call(self, stage: str, fn: Callable[[float], T]) -> T:
        """Run ``fn`` with retries.

        Args:
            stage (str): Stage name used in log records.
            fn (Callable[[float], T]): Invocation receiving the timeout in seconds.

        Returns:
            T: Whatever ``fn`` returned on the first successful attempt.

        Raises:
            GenerationError: The last failure once attempts or time ran out. Exceptions
                from outside the package surface as ``GenerationTimeoutError`` (for
                ``TimeoutError``) or ``GenerationTransportError``.
        """

        retrying = Retrying(
            stop=stop_any(stop_after_attempt(self._max_attempts), self._deadline_reached),
            wait=wait_exponential(
                multiplier=self._wait_seconds, min=0, max=self._wait_seconds * 8
            ),
            retry=retry_if_exception_type(_RETRYABLE),
            sleep=self._sleep,
            before_sleep=lambda state: self._log_retry(stage, state),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                timeout = self._attempt_timeout(stage)
                return self._invoke(fn, timeout)
        raise GenerationError(f"No attempt was made for stage '{stage}'.")

    @staticmethod
    def _invoke(fn: Callable[[float], T], timeout: float) -> T:
        try:
            return fn(timeout)
        except PlanGenerationError:
            raise
        except TimeoutError as exc:
            raise GenerationTimeoutError(str(exc) or "Generation call timed out.") from exc
        except Exception as exc:
            raise GenerationTransportError(f"{type(exc).__name__}: {exc}") from exc

    def _attempt_timeout(self, stage: str) -> float:
        remaining = self.remaining()
        if remaining is None:
            return self._call_timeout
        if remaining <= 0:
            raise DeadlineExceededError(f"Pipeline deadline passed before '{stage}' call.")
        return min(self._call_timeout, remaining)

    def _deadline_reached(self, _: RetryCallState) -> bool:
        return self.expired()

    @staticmethod
    def _log_retry(stage: str, state: RetryCallState) -> None:
        outcome = state.outcome
        error = outcome.exception() if outcome is not None else None
        logger.warning(
            "generation_retry",
            extra={
                "stage": stage,
                "attempt": state.attempt_number,
                "error": str(error),
            },
        )
