"""
Module: tables.py
Description: DynamoDB table definitions for hookrelay.

Single source of the key schemas and indexes, shared by the provisioning
script and the test fixtures.

Key Components:
- table_definitions(): create_table arguments for all four tables
- ensure_tables(): create missing tables and wait until active
"""

from typing import Any, Dict, List

from botocore.exceptions import ClientError

from hookrelay.config.settings import Settings
from hookrelay.utils.logger import get_logger

logger = get_logger(__name__)

QUEUE_STATUS_INDEX = 'StatusScheduledIndex'
LOG_STATUS_INDEX = 'StatusCreatedIndex'


def _status_index(name: str, range_key: str) -> Dict[str, Any]:
    return {
        'IndexName': name,
        'KeySchema': [
            {'AttributeName': 'status', 'KeyType': 'HASH'},
            {'AttributeName': range_key, 'KeyType': 'RANGE'}
        ],
        'Projection': {'ProjectionType': 'ALL'}
    }


def table_definitions(config: Settings) -> List[Dict[str, Any]]:
    """Return create_table keyword arguments for every hookrelay table."""
    return [
        {
            'TableName': config.queue_table_name,
            'KeySchema': [{'AttributeName': 'job_id', 'KeyType': 'HASH'}],
            'AttributeDefinitions': [
                {'AttributeName': 'job_id', 'AttributeType': 'S'},
                {'AttributeName': 'status', 'AttributeType': 'S'},
                {'AttributeName': 'scheduled_at', 'AttributeType': 'S'}
            ],
            'GlobalSecondaryIndexes': [_status_index(QUEUE_STATUS_INDEX, 'scheduled_at')],
            'BillingMode': 'PAY_PER_REQUEST'
        },
        {
            'TableName': config.logs_table_name,
            'KeySchema': [{'AttributeName': 'log_id', 'KeyType': 'HASH'}],
            'AttributeDefinitions': [
                {'AttributeName': 'log_id', 'AttributeType': 'S'},
                {'AttributeName': 'status', 'AttributeType': 'S'},
                {'AttributeName': 'created_at', 'AttributeType': 'S'}
            ],
            'GlobalSecondaryIndexes': [_status_index(LOG_STATUS_INDEX, 'created_at')],
            'BillingMode': 'PAY_PER_REQUEST'
        },
        {
            'TableName': config.schemas_table_name,
            'KeySchema': [
                {'AttributeName': 'destination_id', 'KeyType': 'HASH'},
                {'AttributeName': 'trigger_name', 'KeyType': 'RANGE'}
            ],
            'AttributeDefinitions': [
                {'AttributeName': 'destination_id', 'AttributeType': 'S'},
                {'AttributeName': 'trigger_name', 'AttributeType': 'S'}
            ],
            'BillingMode': 'PAY_PER_REQUEST'
        },
        {
            'TableName': config.destinations_table_name,
            'KeySchema': [{'AttributeName': 'destination_id', 'KeyType': 'HASH'}],
            'AttributeDefinitions': [
                {'AttributeName': 'destination_id', 'AttributeType': 'S'}
            ],
            'BillingMode': 'PAY_PER_REQUEST'
        },
    ]


def ensure_tables(dynamodb, config: Settings) -> List[str]:
    """
    Create any missing hookrelay tables.

    Args:
        dynamodb: boto3 DynamoDB resource
        config: Settings naming the tables

    Returns:
        Names of the tables that were created
    """
    existing = {table.name for table in dynamodb.tables.all()}
    created = []

    for definition in table_definitions(config):
        name = definition['TableName']
        if name in existing:
            logger.debug("Table already exists", table_name=name)
            continue
        try:
            table = dynamodb.create_table(**definition)
            table.wait_until_exists()
        except ClientError as e:
            if e.response['Error']['Code'] == 'ResourceInUseException':
                continue
            logger.error(
                "Failed to create table",
                table_name=name,
                error_code=e.response['Error']['Code'],
                error_message=e.response['Error']['Message']
            )
            raise
        created.append(name)
        logger.info("Table created", table_name=name)

    return created
