"""
Module: base.py
Description: Shared DynamoDB plumbing for the hookrelay stores.

Key Components:
- create_dynamodb_resource(): boto3 resource built from Settings
- storage_retry: tenacity policy for throttled requests
- Item helpers: None stripping, Decimal conversion, pagination cursors

Dependencies: boto3, botocore, tenacity
"""

import base64
import json
from decimal import Decimal
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential
)

from hookrelay.config.settings import Settings, settings as default_settings
from hookrelay.utils.logger import get_logger

logger = get_logger(__name__)

THROTTLING_ERROR_CODES = frozenset({
    'ProvisionedThroughputExceededException',
    'ThrottlingException',
    'RequestLimitExceeded',
    'InternalServerError',
})


def create_dynamodb_resource(config: Optional[Settings] = None):
    """Create a boto3 DynamoDB resource for the configured region/endpoint."""
    config = config or default_settings
    kwargs: Dict[str, Any] = {'region_name': config.aws_region}
    if config.dynamodb_endpoint_url:
        kwargs['endpoint_url'] = config.dynamodb_endpoint_url
    return boto3.resource('dynamodb', **kwargs)


def error_code(exc: ClientError) -> str:
    return exc.response.get('Error', {}).get('Code', '')


def is_conditional_check_failure(exc: BaseException) -> bool:
    """True for the ClientError DynamoDB raises when a condition does not hold."""
    return isinstance(exc, ClientError) and error_code(exc) == 'ConditionalCheckFailedException'


def is_throttling_error(exc: BaseException) -> bool:
    return isinstance(exc, ClientError) and error_code(exc) in THROTTLING_ERROR_CODES


def _log_throttle_retry(retry_state) -> None:
    logger.warning(
        "DynamoDB request throttled, retrying",
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()) if retry_state.outcome else None
    )


# Retries throttled requests only; conditional failures and validation
# errors surface on the first attempt.
storage_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
    retry=retry_if_exception(is_throttling_error),
    before_sleep=_log_throttle_retry,
    reraise=True
)


def strip_none(item: Dict[str, Any]) -> Dict[str, Any]:
    """Remove None values - DynamoDB doesn't allow null attribute values here."""
    return {k: v for k, v in item.items() if v is not None}


def to_int(value: Any) -> Optional[int]:
    """Convert DynamoDB numbers (Decimal) back to int."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return int(value)
    return int(value)


def encode_cursor(last_evaluated_key: Optional[Dict[str, Any]]) -> Optional[str]:
    """Encode a LastEvaluatedKey as an opaque pagination cursor."""
    if not last_evaluated_key:
        return None
    return base64.b64encode(json.dumps(last_evaluated_key, default=str).encode('utf-8')).decode('utf-8')


def decode_cursor(cursor: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Decode a pagination cursor produced by encode_cursor().

    Raises:
        ValueError: If the cursor is not valid
    """
    if not cursor:
        return None
    try:
        return json.loads(base64.b64decode(cursor).decode('utf-8'))
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as e:
        logger.warning("Invalid pagination cursor", cursor=cursor, error=str(e))
        raise ValueError("Invalid pagination cursor")


def log_client_error(message: str, e: ClientError, **context: Any) -> None:
    """Log a ClientError with its DynamoDB error code and message."""
    logger.error(
        message,
        error_code=error_code(e),
        error_message=e.response.get('Error', {}).get('Message'),
        **context
    )
