"""
Module: schema_store.py
Description: DynamoDB repository for trigger schemas.

Example payload capture is write-once: the first payload seen for a
(destination, trigger) pair is kept and later captures are no-ops.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from hookrelay.models.schema import TriggerSchema
from hookrelay.storage.base import (
    create_dynamodb_resource,
    is_conditional_check_failure,
    log_client_error,
    storage_retry,
    strip_none
)
from hookrelay.utils.logger import get_logger
from hookrelay.utils.timeutils import from_iso, to_iso

logger = get_logger(__name__)


def item_to_schema(item: Dict[str, Any]) -> TriggerSchema:
    data = dict(item)
    if 'captured_at' in data:
        data['captured_at'] = from_iso(data['captured_at'])
    data['include_user_data'] = bool(data.get('include_user_data', False))
    return TriggerSchema(**data)


class DynamoDBSchemaStore:
    """Repository for the trigger schema table."""

    def __init__(self, table_name: str, dynamodb=None):
        if not table_name or not isinstance(table_name, str):
            raise ValueError("table_name must be a non-empty string")

        self.table_name = table_name
        self.dynamodb = dynamodb or create_dynamodb_resource()
        self.table = self.dynamodb.Table(table_name)

        logger.info("Schema store initialized", table_name=table_name)

    @storage_retry
    async def get_schema(self, destination_id: str, trigger_name: str) -> Optional[TriggerSchema]:
        try:
            response = self.table.get_item(
                Key={'destination_id': destination_id, 'trigger_name': trigger_name}
            )
        except ClientError as e:
            log_client_error(
                "Failed to retrieve trigger schema",
                e,
                destination_id=destination_id,
                trigger=trigger_name,
                table_name=self.table_name
            )
            raise

        item = response.get('Item')
        return item_to_schema(item) if item else None

    @storage_retry
    async def capture_example(
        self,
        destination_id: str,
        trigger_name: str,
        payload: Dict[str, Any],
        captured_at: datetime
    ) -> bool:
        """
        Store payload as the pair's example unless one is already captured.

        Creates the schema row when it does not exist yet.

        Returns:
            True if this call captured the example
        """
        try:
            self.table.update_item(
                Key={'destination_id': destination_id, 'trigger_name': trigger_name},
                UpdateExpression='SET example_payload = :payload, captured_at = :captured_at',
                ConditionExpression='attribute_not_exists(example_payload)',
                ExpressionAttributeValues={
                    ':payload': json.dumps(payload, default=str),
                    ':captured_at': to_iso(captured_at)
                }
            )
        except ClientError as e:
            if is_conditional_check_failure(e):
                return False
            log_client_error(
                "Failed to capture example payload",
                e,
                destination_id=destination_id,
                trigger=trigger_name,
                table_name=self.table_name
            )
            raise

        logger.info(
            "Example payload captured",
            destination_id=destination_id,
            trigger=trigger_name
        )
        return True

    @storage_retry
    async def upsert_schema(self, schema: TriggerSchema) -> None:
        """Write operator configuration (mapping and enrichment flag) for a pair."""
        item = {
            'destination_id': schema.destination_id,
            'trigger_name': schema.trigger_name,
            'include_user_data': schema.include_user_data,
            'example_payload': json.dumps(schema.example_payload, default=str)
            if schema.example_payload is not None else None,
            'field_mapping': schema.field_mapping.model_dump_json(by_alias=True)
            if schema.field_mapping is not None else None,
            'captured_at': to_iso(schema.captured_at) if schema.captured_at else None,
        }
        try:
            self.table.put_item(Item=strip_none(item))
        except ClientError as e:
            log_client_error(
                "Failed to store trigger schema",
                e,
                destination_id=schema.destination_id,
                trigger=schema.trigger_name,
                table_name=self.table_name
            )
            raise

    @storage_retry
    async def list_by_destination(self, destination_id: str) -> List[TriggerSchema]:
        """All schemas of a destination, ordered by trigger name."""
        schemas: List[TriggerSchema] = []
        kwargs: Dict[str, Any] = {'KeyConditionExpression': Key('destination_id').eq(destination_id)}
        try:
            while True:
                response = self.table.query(**kwargs)
                schemas.extend(item_to_schema(item) for item in response.get('Items', []))
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
                kwargs['ExclusiveStartKey'] = last_key
        except ClientError as e:
            log_client_error(
                "Failed to list trigger schemas",
                e,
                destination_id=destination_id,
                table_name=self.table_name
            )
            raise

        return schemas
