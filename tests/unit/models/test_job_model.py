"""
Module: test_job_model.py
Description: Unit tests for QueueJob and DeliveryLog model validation.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from hookrelay.models.delivery_log import AttemptRecord, DeliveryLog
from hookrelay.models.job import QueueJob

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def _job(**overrides):
    fields = {
        'job_id': "job_0123456789ab",
        'destination_id': "dest_1",
        'trigger_name': "T",
        'payload': '{"destination": {}, "payload": {}}',
        'scheduled_at': NOW,
        'created_at': NOW,
    }
    fields.update(overrides)
    return QueueJob(**fields)


class TestQueueJob:
    """Test cases for QueueJob validation."""

    def test_defaults(self):
        job = _job()

        assert job.status == "pending"
        assert job.attempts == 0
        assert job.is_locked is False

    def test_job_id_pattern(self):
        with pytest.raises(ValidationError):
            _job(job_id="job_short")
        with pytest.raises(ValidationError):
            _job(job_id="evt_0123456789ab")

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            _job(status="queued")

    def test_negative_attempts_rejected(self):
        with pytest.raises(ValidationError):
            _job(attempts=-1)

    def test_lock_pair_set_together(self):
        job = _job(status="processing", locked_at=NOW, locked_by="worker-a")
        assert job.is_locked is True

        with pytest.raises(ValidationError, match="locked_at and locked_by"):
            _job(locked_at=NOW)
        with pytest.raises(ValidationError, match="locked_at and locked_by"):
            _job(locked_by="worker-a")


class TestDeliveryLog:
    """Test cases for DeliveryLog and AttemptRecord."""

    def test_terminal_statuses(self):
        for status, terminal in (
            ("pending", False),
            ("retry", False),
            ("error", False),
            ("success", True),
            ("permanently_failed", True),
        ):
            log = DeliveryLog(
                log_id="log_0123456789ab",
                destination_id="dest_1",
                trigger_name="T",
                status=status,
                created_at=NOW
            )
            assert log.is_terminal is terminal, status

    def test_log_id_pattern(self):
        with pytest.raises(ValidationError):
            DeliveryLog(log_id="bad", destination_id="dest_1", trigger_name="T", created_at=NOW)

    def test_attempt_record_validation(self):
        with pytest.raises(ValidationError):
            AttemptRecord(attempt=0, attempted_at=NOW, status="error")
        with pytest.raises(ValidationError):
            AttemptRecord(attempt=1, attempted_at=NOW, status="retry")
