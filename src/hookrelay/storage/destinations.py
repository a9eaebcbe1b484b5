"""
Module: destinations.py
Description: Destination directory backed by the destinations table.

Endpoint management owns this table; the delivery engine only reads it.
Any object with an async ``find_by_trigger`` can stand in for it.
"""

from typing import List, Optional, Protocol

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from hookrelay.models.destination import Destination
from hookrelay.storage.base import create_dynamodb_resource, log_client_error, storage_retry
from hookrelay.utils.logger import get_logger

logger = get_logger(__name__)


class DestinationDirectory(Protocol):
    """Resolves the destinations subscribed to a trigger."""

    async def find_by_trigger(self, trigger: str) -> List[Destination]:
        ...


def _item_to_destination(item) -> Destination:
    data = dict(item)
    data['triggers'] = list(data.get('triggers') or [])
    return Destination(**data)


class DynamoDBDestinationDirectory:
    """Read-only destination lookups."""

    def __init__(self, table_name: str, dynamodb=None):
        if not table_name or not isinstance(table_name, str):
            raise ValueError("table_name must be a non-empty string")

        self.table_name = table_name
        self.dynamodb = dynamodb or create_dynamodb_resource()
        self.table = self.dynamodb.Table(table_name)

    @storage_retry
    async def get(self, destination_id: str) -> Optional[Destination]:
        try:
            response = self.table.get_item(Key={'destination_id': destination_id})
        except ClientError as e:
            log_client_error(
                "Failed to retrieve destination",
                e,
                destination_id=destination_id,
                table_name=self.table_name
            )
            raise

        item = response.get('Item')
        return _item_to_destination(item) if item else None

    @storage_retry
    async def find_by_trigger(self, trigger: str) -> List[Destination]:
        """Enabled destinations subscribed to the trigger."""
        destinations: List[Destination] = []
        kwargs = {
            'FilterExpression': Attr('triggers').contains(trigger) & Attr('enabled').eq(True)
        }
        try:
            while True:
                response = self.table.scan(**kwargs)
                destinations.extend(_item_to_destination(item) for item in response.get('Items', []))
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
                kwargs['ExclusiveStartKey'] = last_key
        except ClientError as e:
            log_client_error("Failed to find destinations", e, trigger=trigger, table_name=self.table_name)
            raise

        logger.debug("Destinations resolved", trigger=trigger, count=len(destinations))
        return destinations
