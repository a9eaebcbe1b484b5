"""
Module: delivery_log.py
Description: Delivery log and attempt history models.

Every enqueued job has exactly one DeliveryLog row. The row moves from
pending through retry to a terminal success or permanently_failed, and
keeps a bounded history of individual attempts.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

LOG_PENDING = "pending"
LOG_SUCCESS = "success"
LOG_ERROR = "error"
LOG_RETRY = "retry"
LOG_PERMANENTLY_FAILED = "permanently_failed"

LOG_STATUSES = (LOG_PENDING, LOG_SUCCESS, LOG_ERROR, LOG_RETRY, LOG_PERMANENTLY_FAILED)
TERMINAL_LOG_STATUSES = (LOG_SUCCESS, LOG_PERMANENTLY_FAILED)


class AttemptRecord(BaseModel):
    """One delivery attempt as kept in a log's attempt history."""

    attempt: int = Field(..., ge=1, description="1-based attempt number")
    attempted_at: datetime = Field(..., description="When the attempt finished")
    http_code: Optional[int] = Field(default=None, description="HTTP status, if a response arrived")
    status: str = Field(..., pattern=r"^(success|error)$", description="Attempt outcome")
    error_message: Optional[str] = Field(default=None, description="Failure description")
    duration_ms: Optional[int] = Field(default=None, ge=0, description="Request duration")
    should_retry: bool = Field(default=False, description="Whether the failure was retryable")


class DeliveryLog(BaseModel):
    """
    Audit row for one event delivered to one destination.

    original_payload is only present when a transform changed the
    payload (mapping_applied is True).
    """

    log_id: str = Field(..., pattern=r"^log_[a-z0-9]{12}$", description="Unique log identifier")
    destination_id: str = Field(..., min_length=1)
    trigger_name: str = Field(..., min_length=1)
    status: str = Field(
        default=LOG_PENDING,
        pattern=r"^(pending|success|error|retry|permanently_failed)$"
    )
    http_code: Optional[int] = None
    request_payload: Optional[Dict[str, Any]] = None
    original_payload: Optional[Dict[str, Any]] = None
    mapping_applied: bool = False
    response_body: Optional[str] = None
    error_message: Optional[str] = None
    duration_ms: Optional[int] = None
    event_uuid: Optional[str] = None
    event_timestamp: Optional[str] = None
    attempt_history: List[AttemptRecord] = Field(default_factory=list)
    next_attempt_at: Optional[datetime] = None
    created_at: datetime

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_LOG_STATUSES
