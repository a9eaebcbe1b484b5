"""
Module: job_queue/retry.py
Description: Backoff policy for rescheduled delivery jobs.

The delay curve is tenacity's exponential wait evaluated for the job's
attempt count: base, 2 x base, 4 x base, ... capped at max_seconds.
With the defaults that is 30s, 60s, 120s, ... 3600s.
"""

from datetime import timedelta

from tenacity import RetryCallState, wait_exponential


class BackoffPolicy:
    """Exponential backoff evaluated per attempt number."""

    def __init__(self, base_seconds: int = 30, max_seconds: int = 3600):
        if base_seconds <= 0 or max_seconds < base_seconds:
            raise ValueError("backoff requires 0 < base_seconds <= max_seconds")

        self.base_seconds = base_seconds
        self.max_seconds = max_seconds
        self._wait = wait_exponential(multiplier=base_seconds, min=base_seconds, max=max_seconds)

    def delay_for(self, attempt: int) -> timedelta:
        """
        Delay to apply after the given failed attempt (1-based).

        Args:
            attempt: Number of attempts consumed, including the one that just failed

        Returns:
            Delay before the job becomes eligible again
        """
        if attempt < 1:
            raise ValueError("attempt must be >= 1")

        state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})
        state.attempt_number = attempt
        return timedelta(seconds=self._wait(state))
