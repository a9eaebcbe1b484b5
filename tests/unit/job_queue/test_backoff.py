"""
Module: test_backoff.py
Description: Unit tests for the job backoff policy.
"""

from datetime import timedelta

import pytest

from hookrelay.job_queue.retry import BackoffPolicy


class TestBackoffPolicy:
    """Test cases for BackoffPolicy.delay_for."""

    def test_default_curve_doubles_from_thirty_seconds(self):
        """Successive attempts wait 30, 60, 120 ... seconds."""
        policy = BackoffPolicy()

        delays = [policy.delay_for(attempt).total_seconds() for attempt in range(1, 8)]

        assert delays == [30, 60, 120, 240, 480, 960, 1920]

    def test_curve_is_capped(self):
        """Delays never exceed the configured maximum."""
        policy = BackoffPolicy()

        assert policy.delay_for(8) == timedelta(seconds=3600)
        assert policy.delay_for(30) == timedelta(seconds=3600)

    def test_custom_bounds(self):
        policy = BackoffPolicy(base_seconds=5, max_seconds=12)

        assert policy.delay_for(1) == timedelta(seconds=5)
        assert policy.delay_for(2) == timedelta(seconds=10)
        assert policy.delay_for(3) == timedelta(seconds=12)

    def test_invalid_attempt(self):
        with pytest.raises(ValueError, match="attempt must be >= 1"):
            BackoffPolicy().delay_for(0)

    def test_invalid_bounds(self):
        with pytest.raises(ValueError):
            BackoffPolicy(base_seconds=60, max_seconds=30)
