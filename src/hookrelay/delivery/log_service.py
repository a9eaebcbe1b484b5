"""
Module: log_service.py
Description: Delivery log bookkeeping.

One DeliveryLog row per enqueued job. The dispatcher creates the row as
pending, then updates status and response metadata after each attempt
and appends to the attempt history, which is a sliding window of the
most recent attempts.

Key Components:
- DeliveryLogService: create_pending(), update(), append_attempt_history()
- LogStats: counts by status

Dependencies: pydantic, uuid
Author: Hookrelay Team
"""

from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, Field

from hookrelay.config.settings import Settings, settings as default_settings
from hookrelay.models.delivery_log import (
    LOG_ERROR,
    LOG_PENDING,
    LOG_PERMANENTLY_FAILED,
    LOG_STATUSES,
    LOG_SUCCESS,
    AttemptRecord,
    DeliveryLog
)
from hookrelay.storage.log_store import DynamoDBLogStore
from hookrelay.utils.logger import get_logger
from hookrelay.utils.timeutils import Clock, utcnow

logger = get_logger(__name__)


def generate_log_id() -> str:
    """Generate a log id in the format log_{12 hex chars}."""
    return f"log_{uuid4().hex[:12]}"


class LogStats(BaseModel):
    """Delivery log counts; total covers finished attempts only."""

    counts: Dict[str, int] = Field(default_factory=dict)
    total: int = 0


class DeliveryLogService:
    """Writes and reads delivery log rows."""

    def __init__(
        self,
        store: DynamoDBLogStore,
        config: Optional[Settings] = None,
        clock: Clock = utcnow
    ):
        self.store = store
        self.config = config or default_settings
        self.clock = clock

    async def create_pending(
        self,
        destination_id: str,
        trigger: str,
        request_payload: Dict[str, Any],
        original_payload: Optional[Dict[str, Any]] = None,
        mapping_applied: bool = False,
        event_uuid: Optional[str] = None,
        event_timestamp: Optional[str] = None
    ) -> str:
        """
        Create the pending log row for a job about to be enqueued.

        Returns:
            The new log id
        """
        log = DeliveryLog(
            log_id=generate_log_id(),
            destination_id=destination_id,
            trigger_name=trigger,
            status=LOG_PENDING,
            request_payload=request_payload,
            original_payload=original_payload if mapping_applied else None,
            mapping_applied=mapping_applied,
            event_uuid=event_uuid,
            event_timestamp=event_timestamp,
            created_at=self.clock()
        )
        await self.store.put_log(log)
        return log.log_id

    async def update(self, log_id: str, fields: Dict[str, Any]) -> bool:
        """Partial update; None values clear the field."""
        return await self.store.update_log(log_id, fields)

    async def append_attempt_history(self, log_id: str, attempt: AttemptRecord) -> bool:
        """
        Append an attempt and keep only the newest attempt_history_cap entries.

        Returns:
            False if the log row does not exist
        """
        log = await self.store.get_log(log_id)
        if log is None:
            logger.warning("Cannot append attempt to missing log", log_id=log_id, attempt=attempt.attempt)
            return False

        history = list(log.attempt_history) + [attempt]
        cap = self.config.attempt_history_cap
        if len(history) > cap:
            history = history[-cap:]

        return await self.store.update_log(log_id, {'attempt_history': history})

    async def get(self, log_id: str) -> Optional[DeliveryLog]:
        return await self.store.get_log(log_id)

    async def list_logs(
        self,
        status: Optional[str] = None,
        limit: int = 20,
        cursor: Optional[str] = None
    ) -> Tuple[List[DeliveryLog], Optional[str]]:
        if status is not None and status not in LOG_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(LOG_STATUSES)}")
        return await self.store.list_logs(status=status, limit=limit, cursor=cursor)

    async def stats(self) -> LogStats:
        counts = {status: await self.store.count_by_status(status) for status in LOG_STATUSES}
        return LogStats(
            counts=counts,
            total=counts[LOG_SUCCESS] + counts[LOG_ERROR] + counts[LOG_PERMANENTLY_FAILED]
        )
