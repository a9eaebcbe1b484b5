"""
Module: log_store.py
Description: DynamoDB repository for delivery logs.

Payload documents and the attempt history are stored as JSON strings so
numbers, booleans and nesting survive the round trip unchanged.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from pydantic import BaseModel

from hookrelay.models.delivery_log import DeliveryLog
from hookrelay.storage.base import (
    create_dynamodb_resource,
    decode_cursor,
    encode_cursor,
    is_conditional_check_failure,
    log_client_error,
    storage_retry,
    strip_none,
    to_int
)
from hookrelay.storage.tables import LOG_STATUS_INDEX
from hookrelay.utils.logger import get_logger
from hookrelay.utils.timeutils import from_iso, to_iso

logger = get_logger(__name__)

JSON_FIELDS = ('request_payload', 'original_payload', 'attempt_history')
DATETIME_FIELDS = ('created_at', 'next_attempt_at')
INT_FIELDS = ('http_code', 'duration_ms')


def _to_storage(field: str, value: Any) -> Any:
    if value is None:
        return None
    if field in JSON_FIELDS:
        if isinstance(value, list):
            value = [v.model_dump(mode='json') if isinstance(v, BaseModel) else v for v in value]
        return json.dumps(value, default=str)
    if isinstance(value, datetime):
        return to_iso(value)
    return value


def log_to_item(log: DeliveryLog) -> Dict[str, Any]:
    """Convert a DeliveryLog to a DynamoDB item."""
    item = {field: _to_storage(field, getattr(log, field)) for field in DeliveryLog.model_fields}
    if not log.attempt_history:
        item.pop('attempt_history', None)
    return strip_none(item)


def item_to_log(item: Dict[str, Any]) -> DeliveryLog:
    """Convert a DynamoDB item back to a DeliveryLog."""
    data = dict(item)
    for field in JSON_FIELDS:
        if isinstance(data.get(field), str):
            data[field] = json.loads(data[field])
    for field in DATETIME_FIELDS:
        if field in data:
            data[field] = from_iso(data[field])
    for field in INT_FIELDS:
        if field in data:
            data[field] = to_int(data[field])
    return DeliveryLog(**data)


class DynamoDBLogStore:
    """Repository for the delivery log table."""

    def __init__(self, table_name: str, dynamodb=None):
        if not table_name or not isinstance(table_name, str):
            raise ValueError("table_name must be a non-empty string")

        self.table_name = table_name
        self.dynamodb = dynamodb or create_dynamodb_resource()
        self.table = self.dynamodb.Table(table_name)

        logger.info("Log store initialized", table_name=table_name)

    @storage_retry
    async def put_log(self, log: DeliveryLog) -> None:
        if not isinstance(log, DeliveryLog):
            raise ValueError("log must be a DeliveryLog instance")

        try:
            self.table.put_item(Item=log_to_item(log))
        except ClientError as e:
            log_client_error("Failed to store delivery log", e, log_id=log.log_id, table_name=self.table_name)
            raise

    @storage_retry
    async def get_log(self, log_id: str) -> Optional[DeliveryLog]:
        if not log_id or not isinstance(log_id, str):
            raise ValueError("log_id must be a non-empty string")

        try:
            response = self.table.get_item(Key={'log_id': log_id}, ConsistentRead=True)
        except ClientError as e:
            log_client_error("Failed to retrieve delivery log", e, log_id=log_id, table_name=self.table_name)
            raise

        item = response.get('Item')
        return item_to_log(item) if item else None

    @storage_retry
    async def update_log(self, log_id: str, fields: Dict[str, Any]) -> bool:
        """
        Partially update a log row. None values remove the attribute.

        Returns:
            True if the row existed, False otherwise
        """
        set_parts = []
        remove_parts = []
        names: Dict[str, str] = {}
        values: Dict[str, Any] = {}

        for index, (field, value) in enumerate(fields.items()):
            if field not in DeliveryLog.model_fields or field == 'log_id':
                raise ValueError(f"Unknown delivery log field: {field}")
            names[f'#f{index}'] = field
            stored = _to_storage(field, value)
            if stored is None:
                remove_parts.append(f'#f{index}')
            else:
                values[f':v{index}'] = stored
                set_parts.append(f'#f{index} = :v{index}')

        if not names:
            return True

        expression = []
        if set_parts:
            expression.append('SET ' + ', '.join(set_parts))
        if remove_parts:
            expression.append('REMOVE ' + ', '.join(remove_parts))

        kwargs: Dict[str, Any] = {
            'Key': {'log_id': log_id},
            'UpdateExpression': ' '.join(expression),
            'ConditionExpression': 'attribute_exists(log_id)',
            'ExpressionAttributeNames': names,
        }
        if values:
            kwargs['ExpressionAttributeValues'] = values

        try:
            self.table.update_item(**kwargs)
        except ClientError as e:
            if is_conditional_check_failure(e):
                logger.warning("Delivery log not found for update", log_id=log_id)
                return False
            log_client_error("Failed to update delivery log", e, log_id=log_id, table_name=self.table_name)
            raise

        return True

    @storage_retry
    async def list_logs(
        self,
        status: Optional[str] = None,
        limit: int = 20,
        cursor: Optional[str] = None
    ) -> Tuple[List[DeliveryLog], Optional[str]]:
        """List logs, newest first when filtered by status."""
        if limit <= 0 or limit > 100:
            raise ValueError("limit must be between 1 and 100")

        kwargs: Dict[str, Any] = {'Limit': limit}
        start_key = decode_cursor(cursor)
        if start_key:
            kwargs['ExclusiveStartKey'] = start_key

        try:
            if status:
                response = self.table.query(
                    IndexName=LOG_STATUS_INDEX,
                    KeyConditionExpression=Key('status').eq(status),
                    ScanIndexForward=False,
                    **kwargs
                )
            else:
                response = self.table.scan(**kwargs)
        except ClientError as e:
            log_client_error("Failed to list delivery logs", e, status=status, table_name=self.table_name)
            raise

        logs = [item_to_log(item) for item in response.get('Items', [])]
        return logs, encode_cursor(response.get('LastEvaluatedKey'))

    @storage_retry
    async def count_by_status(self, status: str) -> int:
        kwargs: Dict[str, Any] = {
            'IndexName': LOG_STATUS_INDEX,
            'KeyConditionExpression': Key('status').eq(status),
            'Select': 'COUNT',
        }
        total = 0
        try:
            while True:
                response = self.table.query(**kwargs)
                total += response.get('Count', 0)
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
                kwargs['ExclusiveStartKey'] = last_key
        except ClientError as e:
            log_client_error("Failed to count delivery logs", e, status=status, table_name=self.table_name)
            raise

        return total
