"""
Module: bootstrap.py
Description: Wires stores and services into a Dispatcher.

Everything is built from one Settings instance and one shared boto3
DynamoDB resource; any collaborator can be replaced by keyword.
"""

from typing import Optional

from hookrelay.config.settings import Settings, settings as default_settings
from hookrelay.delivery.dispatcher import Dispatcher
from hookrelay.delivery.hooks import DispatchHooks
from hookrelay.delivery.log_service import DeliveryLogService
from hookrelay.delivery.transport import HttpTransport
from hookrelay.job_queue.service import JobQueue
from hookrelay.storage.base import create_dynamodb_resource
from hookrelay.storage.destinations import DestinationDirectory, DynamoDBDestinationDirectory
from hookrelay.storage.log_store import DynamoDBLogStore
from hookrelay.storage.queue_store import DynamoDBQueueStore
from hookrelay.storage.schema_store import DynamoDBSchemaStore
from hookrelay.transform.payload import ActorDirectory, PayloadTransformer
from hookrelay.utils.timeutils import Clock, utcnow


def build_dispatcher(
    config: Optional[Settings] = None,
    *,
    dynamodb=None,
    directory: Optional[DestinationDirectory] = None,
    actor_directory: Optional[ActorDirectory] = None,
    hooks: Optional[DispatchHooks] = None,
    transport: Optional[HttpTransport] = None,
    clock: Clock = utcnow
) -> Dispatcher:
    """
    Build a Dispatcher backed by the configured DynamoDB tables.

    Args:
        config: Settings (defaults to the global settings)
        dynamodb: Shared boto3 DynamoDB resource
        directory: Destination directory (defaults to the destinations table)
        actor_directory: Actor lookups for payload enrichment
        hooks: Dispatch extension points
        transport: HTTP transport
        clock: Time source shared by every component

    Returns:
        Dispatcher
    """
    config = config or default_settings
    dynamodb = dynamodb or create_dynamodb_resource(config)

    queue = JobQueue(
        DynamoDBQueueStore(config.queue_table_name, dynamodb=dynamodb),
        config=config,
        clock=clock
    )
    logs = DeliveryLogService(
        DynamoDBLogStore(config.logs_table_name, dynamodb=dynamodb),
        config=config,
        clock=clock
    )
    transformer = PayloadTransformer(
        DynamoDBSchemaStore(config.schemas_table_name, dynamodb=dynamodb),
        actor_directory=actor_directory,
        config=config,
        clock=clock
    )

    return Dispatcher(
        directory=directory or DynamoDBDestinationDirectory(config.destinations_table_name, dynamodb=dynamodb),
        transformer=transformer,
        queue=queue,
        logs=logs,
        transport=transport,
        hooks=hooks,
        config=config,
        clock=clock
    )
