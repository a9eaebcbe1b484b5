"""
Unit tests for the scheduled worker Lambda handler.
"""

from types import SimpleNamespace

import pytest

from hookrelay.delivery import worker
from hookrelay.delivery.dispatcher import BatchSummary


class FakeQueue:
    def __init__(self):
        self.cleanup_calls = []

    async def cleanup_completed(self, older_than_days):
        self.cleanup_calls.append(older_than_days)
        return 4


class FakeDispatcher:
    def __init__(self):
        self.queue = FakeQueue()
        self.batch_sizes = []

    async def process_batch(self, batch_size):
        self.batch_sizes.append(batch_size)
        return BatchSummary(processed=3, succeeded=2, rescheduled=1)


class FakeMetrics:
    published = []

    def __init__(self, namespace, region_name):
        self.namespace = namespace

    def publish_batch_summary(self, summary, stage=None):
        FakeMetrics.published.append((self.namespace, summary, stage))
        return len(summary)


@pytest.fixture
def fake_dispatcher(monkeypatch, test_settings):
    dispatcher = FakeDispatcher()
    monkeypatch.setattr(worker, "settings", test_settings)
    monkeypatch.setattr(worker, "build_dispatcher", lambda config, **kwargs: dispatcher)
    monkeypatch.setattr(worker, "MetricsClient", FakeMetrics)
    FakeMetrics.published = []
    return dispatcher


class TestWorkerHandler:
    """Test cases for worker.handler."""

    def test_processes_one_batch(self, fake_dispatcher, test_settings):
        result = worker.handler({}, SimpleNamespace(aws_request_id="req-1"))

        assert result['processed'] == 3
        assert result['succeeded'] == 2
        assert result['rescheduled'] == 1
        assert fake_dispatcher.batch_sizes == [test_settings.batch_size]

    def test_batch_size_from_event(self, fake_dispatcher):
        worker.handler({'batch_size': "25"}, None)

        assert fake_dispatcher.batch_sizes == [25]

    def test_metrics_published_when_enabled(self, fake_dispatcher, monkeypatch, test_settings):
        monkeypatch.setattr(worker, "settings", test_settings.model_copy(update={'metrics_enabled': True}))

        worker.handler(None, None)

        assert len(FakeMetrics.published) == 1
        namespace, summary, stage = FakeMetrics.published[0]
        assert namespace == test_settings.metrics_namespace
        assert summary['processed'] == 3
        assert stage == "test"

    def test_metrics_skipped_when_disabled(self, fake_dispatcher, monkeypatch, test_settings):
        monkeypatch.setattr(worker, "settings", test_settings.model_copy(update={'metrics_enabled': False}))

        worker.handler({}, None)

        assert FakeMetrics.published == []

    def test_cleanup_action(self, fake_dispatcher, test_settings):
        result = worker.handler({'action': 'cleanup_completed', 'older_than_days': 7}, None)

        assert result == {'deleted': 4}
        assert fake_dispatcher.queue.cleanup_calls == [7]
        assert fake_dispatcher.batch_sizes == []

    def test_cleanup_uses_configured_retention(self, fake_dispatcher, test_settings):
        worker.handler({'action': 'cleanup_completed'}, None)

        assert fake_dispatcher.queue.cleanup_calls == [test_settings.completed_retention_days]
