"""
Module: envelope.py
Description: Immutable job envelope and its JSON codec.

The envelope snapshots the destination configuration and the transformed
payload at enqueue time, so processing never re-reads configuration that
may have changed since the event fired. It is encoded once when the job
is enqueued and decoded once when the job is claimed.
"""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from hookrelay.errors import EnvelopeDecodeError
from hookrelay.models.destination import Destination


class JobEnvelope(BaseModel):
    """
    Snapshot carried by a queue job.

    Attributes:
        destination: Destination configuration at enqueue time
        payload: Transformed payload to deliver
        mapping_applied: Whether a transform changed the payload
        original_payload: Pre-transform payload (only when mapping_applied)
        log_id: Delivery log row for this job
        event_uuid: Identity shared by all destinations of one firing
        event_timestamp: ISO 8601 timestamp of the firing
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    destination: Destination
    payload: Dict[str, Any]
    mapping_applied: bool = False
    original_payload: Optional[Dict[str, Any]] = None
    log_id: Optional[str] = None
    event_uuid: Optional[str] = None
    event_timestamp: Optional[str] = Field(default=None)

    def encode(self) -> str:
        """Serialize the envelope for storage."""
        return self.model_dump_json(exclude_none=True)

    @classmethod
    def decode(cls, raw: Union[str, bytes, None]) -> "JobEnvelope":
        """
        Decode a stored envelope.

        Raises:
            EnvelopeDecodeError: If the data is not valid JSON or is missing
                the destination or payload
        """
        if not raw:
            raise EnvelopeDecodeError("Job envelope is empty")
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise EnvelopeDecodeError(f"Malformed job envelope: {e.error_count()} error(s)") from e
