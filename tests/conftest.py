"""
Module: conftest.py
Description: Shared pytest fixtures for hookrelay tests.

Provides settings, a controllable clock, moto-backed DynamoDB tables,
the stores and services built on them, and an httpx MockTransport
endpoint whose responses each test scripts.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

import boto3
import httpx
import pytest
from moto import mock_aws

from hookrelay.config.settings import Settings
from hookrelay.delivery.dispatcher import Dispatcher
from hookrelay.delivery.hooks import DispatchHooks
from hookrelay.delivery.log_service import DeliveryLogService
from hookrelay.delivery.transport import HttpTransport
from hookrelay.job_queue.service import JobQueue
from hookrelay.models.actor import Actor
from hookrelay.models.destination import Destination
from hookrelay.storage.log_store import DynamoDBLogStore
from hookrelay.storage.queue_store import DynamoDBQueueStore
from hookrelay.storage.schema_store import DynamoDBSchemaStore
from hookrelay.storage.tables import ensure_tables
from hookrelay.transform.payload import PayloadTransformer


class FakeClock:
    """Deterministic time source; advance() moves it forward."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeDestinationDirectory:
    """In-memory destination directory."""

    def __init__(self, destinations: Optional[List[Destination]] = None):
        self.destinations = list(destinations or [])

    async def find_by_trigger(self, trigger: str) -> List[Destination]:
        return [d for d in self.destinations if d.enabled and trigger in d.triggers]


class FakeActorDirectory:
    """In-memory actor directory with an optional current actor."""

    def __init__(self, actors: Optional[List[Actor]] = None, current: Optional[Actor] = None):
        self.actors = {actor.id: actor for actor in actors or []}
        self.current_actor = current

    async def get_by_id(self, actor_id: int) -> Optional[Actor]:
        return self.actors.get(actor_id)

    async def current(self) -> Optional[Actor]:
        return self.current_actor


class StubEndpoint:
    """
    httpx MockTransport handler.

    ``responses`` is consumed in order; each entry is a status code or an
    httpx exception class. Once empty, every request gets a 200.
    """

    def __init__(self):
        self.responses: List[Any] = []
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.responses.pop(0) if self.responses else 200
        if isinstance(outcome, type) and issubclass(outcome, Exception):
            raise outcome("simulated failure", request=request)
        body = "ok" if 200 <= outcome < 300 else f"upstream said {outcome}"
        return httpx.Response(outcome, text=body)


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 never reaches real AWS."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def test_settings():
    """
    Provide test configuration settings.

    Disables .env loading and uses test table names.
    """
    return Settings(
        _env_file=None,
        log_level="DEBUG",
        aws_region="us-east-1",
        stage="test",
        site_url="https://site.example",
        queue_table_name="test-queue",
        logs_table_name="test-logs",
        schemas_table_name="test-trigger-schemas",
        destinations_table_name="test-destinations"
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def dynamodb(test_settings):
    """moto DynamoDB resource with every hookrelay table created."""
    with mock_aws():
        resource = boto3.resource('dynamodb', region_name='us-east-1')
        ensure_tables(resource, test_settings)
        yield resource


@pytest.fixture
def queue_store(dynamodb, test_settings):
    return DynamoDBQueueStore(test_settings.queue_table_name, dynamodb=dynamodb)


@pytest.fixture
def log_store(dynamodb, test_settings):
    return DynamoDBLogStore(test_settings.logs_table_name, dynamodb=dynamodb)


@pytest.fixture
def schema_store(dynamodb, test_settings):
    return DynamoDBSchemaStore(test_settings.schemas_table_name, dynamodb=dynamodb)


@pytest.fixture
def queue(queue_store, test_settings, clock):
    return JobQueue(queue_store, config=test_settings, clock=clock)


@pytest.fixture
def log_service(log_store, test_settings, clock):
    return DeliveryLogService(log_store, config=test_settings, clock=clock)


@pytest.fixture
def actor_directory():
    return FakeActorDirectory(
        actors=[Actor(id=42, login="ada", email="ada@example.com", roles=["subscriber"])],
        current=Actor(id=7, login="grace", email="grace@example.com")
    )


@pytest.fixture
def transformer(schema_store, actor_directory, test_settings, clock):
    return PayloadTransformer(schema_store, actor_directory=actor_directory, config=test_settings, clock=clock)


@pytest.fixture
def destination():
    return Destination(
        destination_id="dest_1",
        name="Example receiver",
        endpoint_url="https://example.com/hook",
        auth_header="Bearer secret-token",
        triggers=["T"]
    )


@pytest.fixture
def directory(destination):
    return FakeDestinationDirectory([destination])


@pytest.fixture
def endpoint():
    return StubEndpoint()


@pytest.fixture
def transport(endpoint):
    return HttpTransport(httpx.AsyncClient(transport=httpx.MockTransport(endpoint)))


@pytest.fixture
def hooks():
    return DispatchHooks()


@pytest.fixture
def dispatcher(directory, transformer, queue, log_service, transport, hooks, test_settings, clock):
    return Dispatcher(
        directory=directory,
        transformer=transformer,
        queue=queue,
        logs=log_service,
        transport=transport,
        hooks=hooks,
        config=test_settings,
        clock=clock
    )
