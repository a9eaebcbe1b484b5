"""
Module: dispatcher.py
Description: Event dispatch and queued delivery.

Producer path: dispatch() turns one trigger firing into one pending
delivery log row and one queue job per subscribed destination.

Consumer path: process_batch() reclaims stale locks, claims due jobs,
locks each one, sends it and settles the job and its log row:

- 2xx: job completed, log success
- transport error, HTTP 5xx or 429: backoff reschedule, log retry;
  once attempts are exhausted, job and log permanently_failed
- invalid endpoint, unencodable payload, other HTTP 4xx, malformed
  envelope: job and log permanently_failed, no attempt consumed

Every settled attempt appends one entry to the log's attempt history.
The job write and the log write are separate operations; a crash
between them leaves the log one step behind the job.

Key Components:
- Dispatcher: dispatch(), process_batch(), send_to_webhook(), execute_job()
- normalize_args(): JSON-safe view of trigger arguments
- DispatchResult / BatchSummary / DeliveryOutcome / ExecutionResult

Dependencies: httpx (through HttpTransport), pydantic, botocore
Author: Hookrelay Team
"""

import hashlib
import json
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Tuple
from urllib.parse import urlparse
from uuid import uuid4

from botocore.exceptions import ClientError
from pydantic import BaseModel, Field

from hookrelay.config.settings import Settings, settings as default_settings
from hookrelay.delivery.hooks import DispatchHooks
from hookrelay.delivery.log_service import DeliveryLogService
from hookrelay.delivery.transport import HttpTransport
from hookrelay.errors import (
    EnvelopeDecodeError,
    InvalidEndpointError,
    JobNotFoundError,
    JobStateError,
    TransportError
)
from hookrelay.job_queue.service import JobQueue
from hookrelay.models.delivery_log import (
    LOG_ERROR,
    LOG_PERMANENTLY_FAILED,
    LOG_RETRY,
    LOG_SUCCESS,
    AttemptRecord
)
from hookrelay.models.destination import Destination
from hookrelay.models.envelope import JobEnvelope
from hookrelay.models.job import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PERMANENTLY_FAILED,
    STATUS_PROCESSING,
    QueueJob
)
from hookrelay.storage.destinations import DestinationDirectory
from hookrelay.transform.payload import PayloadTransformer
from hookrelay.utils.logger import delivery_context, get_logger
from hookrelay.utils.timeutils import Clock, to_iso, utcnow

logger = get_logger(__name__)

PAYLOAD_VERSION = "1.0"

# Error messages embed at most this much of the response body
ERROR_BODY_CHARS = 500

SUCCEEDED = "succeeded"
RESCHEDULED = "rescheduled"
FAILED = "failed"

# Statuses execute_job may take a job from
MANUALLY_EXECUTABLE = (STATUS_PENDING, STATUS_FAILED, STATUS_PERMANENTLY_FAILED)


class DispatchResult(BaseModel):
    """Outcome of one dispatch() call."""

    dispatched: bool = False
    event_uuid: Optional[str] = None
    event_timestamp: Optional[str] = None
    job_ids: List[str] = Field(default_factory=list)
    duplicates_skipped: int = 0
    errors: int = 0


class BatchSummary(BaseModel):
    """Counters of one process_batch() run."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    rescheduled: int = 0
    stale_cleaned: int = 0
    errors: int = 0


class DeliveryOutcome(BaseModel):
    """Result of a single send_to_webhook() attempt."""

    success: bool
    should_retry: bool = False
    http_code: Optional[int] = None
    error_message: Optional[str] = None
    response_body: Optional[str] = None
    duration_ms: int = 0


class ExecutionResult(BaseModel):
    """Result of an operator-triggered execute_job()."""

    job_id: str
    success: bool
    rescheduled: bool = False
    permanently_failed: bool = False
    scheduled_at: Optional[datetime] = None
    outcome: DeliveryOutcome


def _normalize_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool, dict, list)):
        return value
    if isinstance(value, tuple):
        return list(value)
    return {
        '__type': type(value).__name__,
        'id': getattr(value, 'id', getattr(value, 'ID', None)),
    }


def normalize_args(args: Any) -> Any:
    """
    JSON-safe view of trigger arguments.

    Scalars, dicts and lists pass through; any other object becomes
    {'__type': class name, 'id': its id attribute or None}.
    """
    if args is None:
        return []
    if isinstance(args, dict):
        return {str(key): _normalize_value(value) for key, value in args.items()}
    if isinstance(args, (list, tuple)):
        return [_normalize_value(value) for value in args]
    return [_normalize_value(args)]


def dedup_key(trigger: str, destination: Destination, payload: Dict[str, Any]) -> str:
    """Fingerprint of one (trigger, destination, payload) enqueue."""
    material = "|".join((
        trigger,
        destination.model_dump_json(),
        json.dumps(payload, sort_keys=True, default=str),
    ))
    return hashlib.md5(material.encode("utf-8")).hexdigest()


def validate_endpoint_url(url: Optional[str], require_https: bool) -> str:
    """
    Check that an endpoint URL is well formed and allowed.

    Raises:
        InvalidEndpointError: If the URL is empty, malformed, or not HTTPS
            while HTTPS is required
    """
    if not url or not isinstance(url, str):
        raise InvalidEndpointError("Endpoint URL is empty")

    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https') or not parsed.hostname:
        raise InvalidEndpointError(f"Invalid URL format: {url}")
    if require_https and parsed.scheme != 'https':
        raise InvalidEndpointError(f"HTTPS is required for endpoint URLs: {url}")

    return url


def classify_status(status_code: int) -> Tuple[bool, bool]:
    """
    Classify an HTTP status code.

    Returns:
        (success, should_retry): 2xx succeeds, 429 and 5xx are retryable,
        everything else is a permanent failure
    """
    if 200 <= status_code < 300:
        return True, False
    if status_code == 429 or status_code >= 500:
        return False, True
    return False, False


class Dispatcher:
    """
    Orchestrates enqueueing and delivery of webhook events.

    Example:
        >>> dispatcher = build_dispatcher()
        >>> await dispatcher.dispatch("user_register", [42])
        >>> summary = await dispatcher.process_batch(10)
    """

    def __init__(
        self,
        directory: DestinationDirectory,
        transformer: PayloadTransformer,
        queue: JobQueue,
        logs: DeliveryLogService,
        transport: Optional[HttpTransport] = None,
        hooks: Optional[DispatchHooks] = None,
        config: Optional[Settings] = None,
        clock: Clock = utcnow
    ):
        self.directory = directory
        self.transformer = transformer
        self.queue = queue
        self.logs = logs
        self.transport = transport or HttpTransport()
        self.hooks = hooks or DispatchHooks()
        self.config = config or default_settings
        self.clock = clock

    @property
    def user_agent(self) -> str:
        return f"{self.config.app_name}/{self.config.app_version}"

    async def dispatch(self, trigger: str, args: Any = None) -> DispatchResult:
        """
        Enqueue one delivery per subscribed destination.

        All destinations of one firing share the same event id and
        timestamp. Identical (trigger, destination, payload) combinations
        are enqueued once per call. A storage failure for one destination
        is logged and does not stop the others.

        Args:
            trigger: Trigger name
            args: Trigger arguments (list or dict)

        Returns:
            DispatchResult
        """
        if not await self.hooks.should_dispatch(trigger, args):
            logger.info("Dispatch vetoed", trigger=trigger)
            return DispatchResult()

        destinations = await self.directory.find_by_trigger(trigger)
        if not destinations:
            logger.debug("No destinations subscribed", trigger=trigger)
            return DispatchResult()

        now = self.clock()
        event_uuid = str(uuid4())
        event_timestamp = to_iso(now)

        payload = {
            'event': {
                'id': event_uuid,
                'timestamp': event_timestamp,
                'version': PAYLOAD_VERSION,
            },
            'hook': trigger,
            'args': normalize_args(args),
            'timestamp': int(now.timestamp()),
            'site': {
                'url': self.config.site_url,
            },
        }
        payload = await self.hooks.filter_payload(payload, trigger, args)

        result = DispatchResult(dispatched=True, event_uuid=event_uuid, event_timestamp=event_timestamp)
        seen: Set[str] = set()

        for destination in destinations:
            if not destination.enabled:
                continue

            key = dedup_key(trigger, destination, payload)
            if key in seen:
                result.duplicates_skipped += 1
                logger.debug(
                    "Duplicate enqueue skipped",
                    trigger=trigger,
                    destination_id=destination.destination_id
                )
                continue
            seen.add(key)

            try:
                job_id = await self._enqueue_for(destination, trigger, payload, args, event_uuid, event_timestamp)
            except ClientError as e:
                result.errors += 1
                logger.error(
                    "Failed to enqueue delivery",
                    trigger=trigger,
                    destination_id=destination.destination_id,
                    error=str(e)
                )
                continue

            result.job_ids.append(job_id)

        logger.info(
            "Event dispatched",
            trigger=trigger,
            event_uuid=event_uuid,
            jobs=len(result.job_ids),
            duplicates_skipped=result.duplicates_skipped,
            errors=result.errors
        )
        return result

    async def _enqueue_for(
        self,
        destination: Destination,
        trigger: str,
        payload: Dict[str, Any],
        args: Any,
        event_uuid: str,
        event_timestamp: str
    ) -> str:
        transformed = await self.transformer.transform(destination.destination_id, trigger, payload, args)

        log_id = await self.logs.create_pending(
            destination.destination_id,
            trigger,
            transformed.transformed,
            original_payload=transformed.original,
            mapping_applied=transformed.mapping_applied,
            event_uuid=event_uuid,
            event_timestamp=event_timestamp
        )

        envelope = JobEnvelope(
            destination=destination,
            payload=transformed.transformed,
            mapping_applied=transformed.mapping_applied,
            original_payload=transformed.original,
            log_id=log_id,
            event_uuid=event_uuid,
            event_timestamp=event_timestamp
        )
        return await self.queue.enqueue(destination.destination_id, trigger, envelope, log_id=log_id)

    async def process_batch(self, batch_size: Optional[int] = None) -> BatchSummary:
        """
        Deliver up to batch_size due jobs, one at a time.

        Never raises: storage and per-job failures are logged and counted
        in ``errors``; a job that fails mid-delivery is left locked for
        stale-lock recovery. Each job is delivered from the state its lock
        write returned, not from the claim snapshot.

        Returns:
            BatchSummary
        """
        batch_size = batch_size or self.config.batch_size
        summary = BatchSummary()

        try:
            summary.stale_cleaned = await self.queue.cleanup_stale(self.config.stale_lock_timeout_minutes)
        except Exception as e:
            summary.errors += 1
            logger.error("Stale lock cleanup failed", error=str(e), error_type=type(e).__name__, exc_info=True)

        try:
            jobs = await self.queue.claim_batch(batch_size)
        except Exception as e:
            summary.errors += 1
            logger.error("Failed to claim jobs", error=str(e), error_type=type(e).__name__, exc_info=True)
            return summary

        token = str(uuid4())

        for claimed in jobs:
            with delivery_context(job_id=claimed.job_id, lock_token=token):
                try:
                    job = await self.queue.acquire(claimed.job_id, token, due_only=True)
                    if job is None:
                        continue

                    summary.processed += 1
                    disposition, _ = await self._run_locked_job(job)

                    if disposition == SUCCEEDED:
                        summary.succeeded += 1
                    elif disposition == RESCHEDULED:
                        summary.rescheduled += 1
                    else:
                        summary.failed += 1

                except Exception as e:
                    summary.errors += 1
                    logger.error(
                        "Job processing failed",
                        error=str(e),
                        error_type=type(e).__name__,
                        exc_info=True
                    )

        logger.info("Batch processed", lock_token=token, **summary.model_dump())
        return summary

    async def _run_locked_job(self, job: QueueJob) -> Tuple[str, Optional[datetime]]:
        """Deliver a job this worker holds the lock for and settle it."""
        attempt_number = job.attempts + 1

        try:
            envelope = JobEnvelope.decode(job.payload)
        except EnvelopeDecodeError as e:
            await self._fail_malformed(job, attempt_number, str(e))
            return FAILED, None

        log_id = envelope.log_id or job.log_id
        outcome = await self.send_to_webhook(
            envelope.destination,
            envelope.payload,
            job.trigger_name,
            log_id,
            attempt_number,
            event_uuid=envelope.event_uuid,
            event_timestamp=envelope.event_timestamp
        )
        return await self._settle(job.job_id, log_id, outcome)

    async def _fail_malformed(self, job: QueueJob, attempt_number: int, message: str) -> None:
        logger.error("Malformed job envelope", log_id=job.log_id, error=message)

        await self.queue.mark_permanently_failed(job.job_id)
        if job.log_id:
            await self.logs.update(job.log_id, {
                'status': LOG_PERMANENTLY_FAILED,
                'error_message': message,
                'next_attempt_at': None,
            })
            await self.logs.append_attempt_history(job.log_id, AttemptRecord(
                attempt=attempt_number,
                attempted_at=self.clock(),
                status='error',
                error_message=message,
                duration_ms=0,
                should_retry=False
            ))

    async def _settle(
        self,
        job_id: str,
        log_id: Optional[str],
        outcome: DeliveryOutcome
    ) -> Tuple[str, Optional[datetime]]:
        """Apply a delivery outcome to the job and its log row."""
        if outcome.success:
            await self.queue.mark_completed(job_id)
            return SUCCEEDED, None

        if outcome.should_retry:
            reschedule = await self.queue.reschedule_with_backoff(job_id)
            if reschedule.rescheduled:
                if log_id:
                    await self.logs.update(log_id, {
                        'status': LOG_RETRY,
                        'next_attempt_at': reschedule.scheduled_at,
                    })
                return RESCHEDULED, reschedule.scheduled_at

        await self.queue.mark_permanently_failed(job_id)
        if log_id:
            await self.logs.update(log_id, {
                'status': LOG_PERMANENTLY_FAILED,
                'next_attempt_at': None,
            })
        return FAILED, None

    async def send_to_webhook(
        self,
        destination: Destination,
        payload: Dict[str, Any],
        trigger: str,
        log_id: Optional[str],
        attempt_number: int,
        event_uuid: Optional[str] = None,
        event_timestamp: Optional[str] = None
    ) -> DeliveryOutcome:
        """
        Make one delivery attempt and record it.

        Updates the log row (success or error with response metadata) and
        appends the attempt to its history. Does not touch the queue job.

        Returns:
            DeliveryOutcome
        """
        url = destination.endpoint_url
        started = time.monotonic()

        try:
            validate_endpoint_url(url, self.config.require_https)
            body = json.dumps(payload, allow_nan=False)
        except InvalidEndpointError as e:
            outcome = DeliveryOutcome(success=False, should_retry=False, error_message=str(e))
            return await self._record(destination, payload, trigger, log_id, attempt_number, outcome)
        except (TypeError, ValueError) as e:
            outcome = DeliveryOutcome(
                success=False,
                should_retry=False,
                error_message=f"Payload encoding failed: {e}"
            )
            return await self._record(destination, payload, trigger, log_id, attempt_number, outcome)

        headers = {
            'Content-Type': 'application/json',
            'User-Agent': self.user_agent,
        }
        if destination.auth_header:
            headers['Authorization'] = destination.auth_header
        if event_uuid:
            headers['X-Event-Id'] = event_uuid
        if event_timestamp:
            headers['X-Event-Timestamp'] = event_timestamp
        headers = await self.hooks.inject_headers(headers, destination, trigger)

        logger.debug(
            "Attempting delivery",
            destination_id=destination.destination_id,
            trigger=trigger,
            log_id=log_id,
            attempt=attempt_number,
            url=url
        )

        try:
            response = await self.transport.send(
                url,
                body,
                headers,
                timeout=self.config.http_timeout,
                connect_timeout=self.config.http_connect_timeout
            )
        except TransportError as e:
            outcome = DeliveryOutcome(
                success=False,
                should_retry=e.transient,
                error_message=str(e),
                duration_ms=int((time.monotonic() - started) * 1000)
            )
            return await self._record(destination, payload, trigger, log_id, attempt_number, outcome)

        success, should_retry = classify_status(response.status_code)
        outcome = DeliveryOutcome(
            success=success,
            should_retry=should_retry,
            http_code=response.status_code,
            response_body=response.body,
            error_message=None if success else f"HTTP {response.status_code}: {response.body[:ERROR_BODY_CHARS]}",
            duration_ms=int((time.monotonic() - started) * 1000)
        )
        return await self._record(destination, payload, trigger, log_id, attempt_number, outcome)

    async def _record(
        self,
        destination: Destination,
        payload: Dict[str, Any],
        trigger: str,
        log_id: Optional[str],
        attempt_number: int,
        outcome: DeliveryOutcome
    ) -> DeliveryOutcome:
        context = {
            'destination_id': destination.destination_id,
            'trigger': trigger,
            'log_id': log_id,
            'attempt': attempt_number,
            'status_code': outcome.http_code,
            'duration_ms': outcome.duration_ms,
        }
        if outcome.success:
            logger.info("Delivery succeeded", **context)
        elif outcome.should_retry:
            logger.warning("Delivery failed, retryable", error=outcome.error_message, **context)
        else:
            logger.error("Delivery failed permanently", error=outcome.error_message, **context)

        if log_id:
            await self.logs.update(log_id, {
                'status': LOG_SUCCESS if outcome.success else LOG_ERROR,
                'http_code': outcome.http_code,
                'response_body': outcome.response_body,
                'error_message': outcome.error_message,
                'duration_ms': outcome.duration_ms,
            })
            await self.logs.append_attempt_history(log_id, AttemptRecord(
                attempt=attempt_number,
                attempted_at=self.clock(),
                http_code=outcome.http_code,
                status='success' if outcome.success else 'error',
                error_message=outcome.error_message,
                duration_ms=outcome.duration_ms,
                should_retry=outcome.should_retry
            ))

        if outcome.success:
            await self.hooks.notify_success(trigger, destination.endpoint_url, payload, outcome.http_code)
        else:
            await self.hooks.notify_error(trigger, destination.endpoint_url, outcome.error_message or "")

        return outcome

    async def execute_job(self, job_id: str) -> ExecutionResult:
        """
        Deliver one job immediately, outside the schedule.

        Raises:
            JobNotFoundError: If the job does not exist
            JobStateError: If the job is processing or completed, or another
                worker locks it first
            EnvelopeDecodeError: If the stored envelope is malformed
        """
        job = await self.queue.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.status == STATUS_PROCESSING:
            raise JobStateError(job_id, job.status, "Job is currently being processed")
        if job.status == STATUS_COMPLETED:
            raise JobStateError(job_id, job.status, "Job has already been completed")

        envelope = JobEnvelope.decode(job.payload)
        token = f"manual-{uuid4()}"

        with delivery_context(job_id=job_id, lock_token=token):
            locked = await self.queue.acquire(job_id, token, from_statuses=MANUALLY_EXECUTABLE)
            if locked is None:
                raise JobStateError(job_id, STATUS_PROCESSING, "Could not lock job for processing")

            log_id = envelope.log_id or locked.log_id
            outcome = await self.send_to_webhook(
                envelope.destination,
                envelope.payload,
                locked.trigger_name,
                log_id,
                locked.attempts + 1,
                event_uuid=envelope.event_uuid,
                event_timestamp=envelope.event_timestamp
            )
            disposition, scheduled_at = await self._settle(job_id, log_id, outcome)

            logger.info("Job executed manually", disposition=disposition)
        return ExecutionResult(
            job_id=job_id,
            success=disposition == SUCCEEDED,
            rescheduled=disposition == RESCHEDULED,
            permanently_failed=disposition == FAILED,
            scheduled_at=scheduled_at,
            outcome=outcome
        )
