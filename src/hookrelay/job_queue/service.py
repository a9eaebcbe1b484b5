"""
Module: job_queue/service.py
Description: Durable delivery job queue.

Implements enqueue, claiming, the atomic lock, backoff rescheduling,
stale-lock recovery and queue statistics on top of the DynamoDB queue
store.

Delivery is at-least-once. cleanup_stale() reclaims any job whose lock
is older than the timeout, so a worker that is slow rather than dead can
have its job taken over and delivered a second time.

Key Components:
- JobQueue: queue operations
- RescheduleResult / QueueStats: operation results

Dependencies: pydantic, uuid, datetime
Author: Hookrelay Team
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, Field

from hookrelay.config.settings import Settings, settings as default_settings
from hookrelay.errors import JobNotFoundError, JobStateError
from hookrelay.job_queue.retry import BackoffPolicy
from hookrelay.models.envelope import JobEnvelope
from hookrelay.models.job import (
    JOB_STATUSES,
    RETRYABLE_BY_OPERATOR,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PERMANENTLY_FAILED,
    STATUS_PROCESSING,
    QueueJob
)
from hookrelay.storage.queue_store import DynamoDBQueueStore
from hookrelay.utils.logger import get_logger
from hookrelay.utils.timeutils import Clock, to_iso, utcnow

logger = get_logger(__name__)


def generate_job_id() -> str:
    """Generate a job id in the format job_{12 hex chars}."""
    return f"job_{uuid4().hex[:12]}"


class RescheduleResult(BaseModel):
    """Outcome of rescheduleWithBackoff."""

    rescheduled: bool
    scheduled_at: Optional[datetime] = None
    attempts: int = 0


class QueueStats(BaseModel):
    """Queue health snapshot."""

    counts: Dict[str, int] = Field(default_factory=dict)
    total: int = 0
    oldest_pending_scheduled_at: Optional[datetime] = None
    due_now: int = 0


class JobQueue:
    """
    Delivery job queue.

    Example:
        >>> queue = JobQueue(store)
        >>> job_id = await queue.enqueue("dest_1", "user_register", envelope, log_id=log_id)
        >>> for job in await queue.claim_batch(10):
        ...     if await queue.lock(job.job_id, token):
        ...         ...
    """

    def __init__(
        self,
        store: DynamoDBQueueStore,
        config: Optional[Settings] = None,
        clock: Clock = utcnow,
        backoff: Optional[BackoffPolicy] = None
    ):
        self.store = store
        self.config = config or default_settings
        self.clock = clock
        self.backoff = backoff or BackoffPolicy(
            self.config.backoff_base_seconds,
            self.config.backoff_max_seconds
        )

    async def enqueue(
        self,
        destination_id: str,
        trigger: str,
        envelope: Union[JobEnvelope, str],
        scheduled_at: Optional[datetime] = None,
        log_id: Optional[str] = None
    ) -> str:
        """
        Add a pending job.

        Args:
            destination_id: Destination the job delivers to
            trigger: Trigger name
            envelope: Job envelope (encoded here if not already a string)
            scheduled_at: First eligible time, defaults to now (UTC)
            log_id: Delivery log row linked to the job

        Returns:
            The new job id
        """
        now = self.clock()
        encoded = envelope.encode() if isinstance(envelope, JobEnvelope) else envelope

        job = QueueJob(
            job_id=generate_job_id(),
            destination_id=destination_id,
            trigger_name=trigger,
            payload=encoded,
            status=STATUS_PENDING,
            attempts=0,
            max_attempts=self.config.max_attempts,
            scheduled_at=scheduled_at or now,
            log_id=log_id,
            created_at=now
        )
        await self.store.put_job(job)

        logger.info(
            "Job enqueued",
            job_id=job.job_id,
            destination_id=destination_id,
            trigger=trigger,
            log_id=log_id,
            max_attempts=job.max_attempts
        )
        return job.job_id

    async def claim_batch(self, limit: int) -> List[QueueJob]:
        """Due, unlocked pending jobs ordered by scheduled_at ascending."""
        return await self.store.find_due(self.clock(), limit)

    async def lock(self, job_id: str, token: str) -> bool:
        """
        Take exclusive ownership of a pending job.

        A single conditional write: only one of any number of concurrent
        callers sees True for a given unlocked job.
        """
        return await self.acquire(job_id, token) is not None

    async def acquire(
        self,
        job_id: str,
        token: str,
        from_statuses: Sequence[str] = (STATUS_PENDING,),
        due_only: bool = False
    ) -> Optional[QueueJob]:
        """
        Lock a job and return its current stored state.

        Callers deliver from the returned job rather than from a claim_batch
        snapshot, which the status index may serve stale. Workers pass
        ``due_only`` so a job rescheduled since the claim is left alone.

        Returns:
            The locked job, or None if it is missing, already locked or not
            in one of ``from_statuses``
        """
        job = await self.store.acquire_lock(job_id, token, self.clock(), from_statuses, due_only)
        if job is not None:
            logger.debug("Job locked", job_id=job_id, locked_by=token)
        return job

    async def unlock(self, job_id: str) -> bool:
        """Release a lock and return the job to pending without consuming an attempt."""
        return await self.store.update_job(job_id, {'status': STATUS_PENDING}, clear_lock=True)

    async def mark_completed(self, job_id: str) -> bool:
        return await self.store.update_job(job_id, {'status': STATUS_COMPLETED}, clear_lock=True)

    async def mark_failed(self, job_id: str) -> bool:
        return await self.store.update_job(job_id, {'status': STATUS_FAILED}, clear_lock=True)

    async def mark_permanently_failed(self, job_id: str) -> bool:
        updated = await self.store.update_job(
            job_id,
            {'status': STATUS_PERMANENTLY_FAILED},
            clear_lock=True
        )
        if updated:
            logger.warning("Job permanently failed", job_id=job_id)
        return updated

    async def reschedule_with_backoff(self, job_id: str) -> RescheduleResult:
        """
        Consume one attempt and schedule the next one.

        When the attempt budget is exhausted the job is left locked with the
        final attempt count recorded and rescheduled=False is returned; the
        caller must then mark it permanently failed.
        """
        job = await self.store.get_job(job_id)
        if job is None:
            logger.warning("Cannot reschedule missing job", job_id=job_id)
            return RescheduleResult(rescheduled=False)

        attempts = job.attempts + 1
        if attempts >= job.max_attempts:
            await self.store.update_job(job_id, {'attempts': attempts})
            logger.info(
                "Job exhausted its attempts",
                job_id=job_id,
                attempts=attempts,
                max_attempts=job.max_attempts
            )
            return RescheduleResult(rescheduled=False, attempts=attempts)

        # scheduled_at never moves backwards across reschedules
        scheduled_at = max(self.clock() + self.backoff.delay_for(attempts), job.scheduled_at)

        await self.store.update_job(
            job_id,
            {
                'attempts': attempts,
                'status': STATUS_PENDING,
                'scheduled_at': scheduled_at
            },
            clear_lock=True
        )

        logger.info(
            "Job rescheduled",
            job_id=job_id,
            attempts=attempts,
            scheduled_at=to_iso(scheduled_at)
        )
        return RescheduleResult(rescheduled=True, scheduled_at=scheduled_at, attempts=attempts)

    async def cleanup_stale(self, timeout_minutes: Optional[int] = None) -> int:
        """
        Return processing jobs with locks older than the timeout to pending.

        Returns:
            Number of jobs reclaimed by this call
        """
        if timeout_minutes is None:
            timeout_minutes = self.config.stale_lock_timeout_minutes
        threshold = self.clock() - timedelta(minutes=timeout_minutes)

        reclaimed = 0
        for job in await self.store.find_stale(threshold):
            if await self.store.release_stale_lock(job.job_id, to_iso(job.locked_at)):
                reclaimed += 1
                logger.warning(
                    "Stale lock reclaimed",
                    job_id=job.job_id,
                    locked_by=job.locked_by,
                    locked_at=to_iso(job.locked_at)
                )

        return reclaimed

    async def force_retry(self, job_id: str) -> bool:
        """
        Operator retry of a failed or permanently failed job.

        Resets attempts and makes the job due immediately.

        Returns:
            False if the job does not exist or is not in a failed state
        """
        job = await self.store.get_job(job_id)
        if job is None or job.status not in RETRYABLE_BY_OPERATOR:
            return False

        return await self.store.update_job(
            job_id,
            {
                'status': STATUS_PENDING,
                'attempts': 0,
                'scheduled_at': self.clock()
            },
            clear_lock=True
        )

    async def stats(self) -> QueueStats:
        """Counts by status, oldest pending scheduled_at and due-now count."""
        counts = {status: await self.store.count_by_status(status) for status in JOB_STATUSES}
        return QueueStats(
            counts=counts,
            total=sum(counts.values()),
            oldest_pending_scheduled_at=await self.store.oldest_pending_scheduled_at(),
            due_now=await self.store.count_by_status(STATUS_PENDING, scheduled_before=self.clock())
        )

    async def get_job(self, job_id: str) -> Optional[QueueJob]:
        return await self.store.get_job(job_id)

    async def list_jobs(
        self,
        status: Optional[str] = None,
        limit: int = 50,
        cursor: Optional[str] = None
    ) -> Tuple[List[QueueJob], Optional[str]]:
        if status is not None and status not in JOB_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(JOB_STATUSES)}")
        return await self.store.list_jobs(status=status, limit=limit, cursor=cursor)

    async def delete_job(self, job_id: str) -> bool:
        """
        Delete a job that is not being processed.

        Raises:
            JobNotFoundError: If the job does not exist
            JobStateError: If the job is currently processing
        """
        job = await self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.status == STATUS_PROCESSING:
            raise JobStateError(job_id, job.status, "Cannot delete a job that is currently being processed")
        return await self.store.delete_job(job_id)

    async def cleanup_completed(self, older_than_days: Optional[int] = None) -> int:
        """Retention sweep: delete completed jobs created before the threshold."""
        if older_than_days is None:
            older_than_days = self.config.completed_retention_days
        threshold = self.clock() - timedelta(days=older_than_days)

        job_ids = await self.store.find_completed_before(threshold)
        if not job_ids:
            return 0

        deleted = await self.store.delete_jobs(job_ids)
        logger.info("Completed jobs cleaned up", deleted=deleted, older_than_days=older_than_days)
        return deleted
