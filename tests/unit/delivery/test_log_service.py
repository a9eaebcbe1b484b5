"""
Module: test_log_service.py
Description: Unit tests for delivery log bookkeeping.
"""

from datetime import timedelta

import pytest

from hookrelay.models.delivery_log import (
    LOG_ERROR,
    LOG_PENDING,
    LOG_RETRY,
    LOG_SUCCESS,
    AttemptRecord
)


def _attempt(number, clock, status='error'):
    return AttemptRecord(
        attempt=number,
        attempted_at=clock.advance(seconds=30),
        http_code=503 if status == 'error' else 200,
        status=status,
        error_message="HTTP 503" if status == 'error' else None,
        duration_ms=12,
        should_retry=status == 'error'
    )


class TestDeliveryLogService:
    """Test cases for DeliveryLogService."""

    @pytest.mark.asyncio
    async def test_create_pending(self, log_service):
        log_id = await log_service.create_pending(
            "dest_1",
            "T",
            {'hook': 'T', 'user': {'id': 1}},
            original_payload={'hook': 'T'},
            mapping_applied=True,
            event_uuid="evt-uuid",
            event_timestamp="2026-01-15T12:00:00+00:00"
        )

        log = await log_service.get(log_id)
        assert log.log_id.startswith("log_")
        assert log.status == LOG_PENDING
        assert log.request_payload == {'hook': 'T', 'user': {'id': 1}}
        assert log.original_payload == {'hook': 'T'}
        assert log.mapping_applied is True
        assert log.event_uuid == "evt-uuid"
        assert log.attempt_history == []

    @pytest.mark.asyncio
    async def test_original_payload_dropped_without_mapping(self, log_service):
        log_id = await log_service.create_pending("dest_1", "T", {'a': 1}, original_payload={'a': 1})

        assert (await log_service.get(log_id)).original_payload is None

    @pytest.mark.asyncio
    async def test_update_sets_and_clears_fields(self, log_service, clock):
        log_id = await log_service.create_pending("dest_1", "T", {'a': 1})

        await log_service.update(log_id, {
            'status': LOG_RETRY,
            'http_code': 503,
            'next_attempt_at': clock.now + timedelta(seconds=30),
        })
        log = await log_service.get(log_id)
        assert log.status == LOG_RETRY
        assert log.http_code == 503
        assert log.next_attempt_at == clock.now + timedelta(seconds=30)

        await log_service.update(log_id, {'status': LOG_SUCCESS, 'next_attempt_at': None})
        log = await log_service.get(log_id)
        assert log.status == LOG_SUCCESS
        assert log.next_attempt_at is None

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, log_service):
        log_id = await log_service.create_pending("dest_1", "T", {'a': 1})

        with pytest.raises(ValueError, match="Unknown delivery log field"):
            await log_service.update(log_id, {'bogus': 1})

    @pytest.mark.asyncio
    async def test_attempt_history_is_a_sliding_window(self, log_service, clock, test_settings):
        """After more attempts than the cap only the newest remain, in order."""
        log_id = await log_service.create_pending("dest_1", "T", {'a': 1})
        total = test_settings.attempt_history_cap + 3

        for number in range(1, total + 1):
            assert await log_service.append_attempt_history(log_id, _attempt(number, clock))

        history = (await log_service.get(log_id)).attempt_history
        assert len(history) == test_settings.attempt_history_cap
        assert [entry.attempt for entry in history] == list(range(4, total + 1))
        assert history == sorted(history, key=lambda entry: entry.attempted_at)

    @pytest.mark.asyncio
    async def test_append_to_missing_log(self, log_service, clock):
        assert await log_service.append_attempt_history("log_000000000000", _attempt(1, clock)) is False

    @pytest.mark.asyncio
    async def test_stats_and_listing(self, log_service):
        first = await log_service.create_pending("dest_1", "T", {'a': 1})
        second = await log_service.create_pending("dest_1", "T", {'a': 2})
        await log_service.create_pending("dest_1", "T", {'a': 3})
        await log_service.update(first, {'status': LOG_SUCCESS})
        await log_service.update(second, {'status': LOG_ERROR})

        stats = await log_service.stats()
        assert stats.counts[LOG_SUCCESS] == 1
        assert stats.counts[LOG_ERROR] == 1
        assert stats.counts[LOG_PENDING] == 1
        assert stats.total == 2

        logs, cursor = await log_service.list_logs(status=LOG_SUCCESS)
        assert [log.log_id for log in logs] == [first]
        assert cursor is None

        with pytest.raises(ValueError):
            await log_service.list_logs(status="bogus")
