"""
Package: job_queue
Description: Durable delivery job queue with atomic claiming and backoff.
"""

from .retry import BackoffPolicy
from .service import JobQueue, QueueStats, RescheduleResult

__all__ = ["BackoffPolicy", "JobQueue", "QueueStats", "RescheduleResult"]
