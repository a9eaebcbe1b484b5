"""
Module: job.py
Description: Queue job model for the durable delivery queue.

A QueueJob is one pending delivery of one event to one destination.
The envelope is kept as the encoded string written at enqueue time and
decoded only when the job is processed.

Key Components:
- QueueJob: job record with lock and scheduling fields
- Job status constants

Dependencies: pydantic, datetime, typing
Author: Hookrelay Team
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
STATUS_PERMANENTLY_FAILED = "permanently_failed"

JOB_STATUSES = (
    STATUS_PENDING,
    STATUS_PROCESSING,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PERMANENTLY_FAILED,
)

# Statuses an operator may force back to pending
RETRYABLE_BY_OPERATOR = (STATUS_FAILED, STATUS_PERMANENTLY_FAILED)


class QueueJob(BaseModel):
    """
    Delivery job stored in the queue table.

    Attributes:
        job_id: Unique job identifier (generated)
        destination_id: Destination the job delivers to
        trigger_name: Trigger that produced the event
        payload: Encoded JobEnvelope (JSON string)
        status: pending, processing, completed, failed or permanently_failed
        attempts: Failed attempts consumed so far
        max_attempts: Attempt budget captured at enqueue time
        locked_at: When the current worker took the lock
        locked_by: Lock token of the current worker
        scheduled_at: Earliest time the job may be claimed
        log_id: Delivery log row linked to this job
        created_at: Enqueue timestamp
    """

    model_config = ConfigDict(validate_assignment=True)

    job_id: str = Field(..., pattern=r"^job_[a-z0-9]{12}$", description="Unique job identifier")
    destination_id: str = Field(..., min_length=1, description="Destination identifier")
    trigger_name: str = Field(..., min_length=1, description="Trigger name")
    payload: str = Field(..., description="Encoded job envelope; decoded and validated at delivery")
    status: str = Field(
        default=STATUS_PENDING,
        pattern=r"^(pending|processing|completed|failed|permanently_failed)$",
        description="Job status"
    )
    attempts: int = Field(default=0, ge=0, description="Attempts consumed")
    max_attempts: int = Field(default=5, ge=1, description="Attempt budget")
    locked_at: Optional[datetime] = Field(default=None, description="Lock timestamp")
    locked_by: Optional[str] = Field(default=None, description="Lock owner token")
    scheduled_at: datetime = Field(..., description="Next eligible processing time")
    log_id: Optional[str] = Field(default=None, description="Linked delivery log")
    created_at: datetime = Field(..., description="Enqueue timestamp")

    @model_validator(mode='after')
    def validate_lock_pair(self) -> "QueueJob":
        """locked_at and locked_by are set and cleared together."""
        if (self.locked_at is None) != (self.locked_by is None):
            raise ValueError("locked_at and locked_by must both be set or both be empty")
        return self

    @property
    def is_locked(self) -> bool:
        return self.locked_at is not None
