"""
Module: queue_store.py
Description: DynamoDB repository for queue jobs.

Exposes only the query shapes the job queue needs: insert, lookup,
the conditional lock write, field updates, the due-pending and
stale-processing scans over StatusScheduledIndex, counts, paginated
listing and the completed-job sweep.

Key Components:
- DynamoDBQueueStore: repository over the queue table
- acquire_lock(): single conditional write on locked_at, status and (for workers) due time
- release_stale_lock(): conditional reset fenced on the observed lock

Dependencies: boto3, botocore, tenacity
Author: Hookrelay Team
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from hookrelay.models.job import QueueJob, STATUS_COMPLETED, STATUS_PENDING, STATUS_PROCESSING
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
from hookrelay.storage.tables import QUEUE_STATUS_INDEX
from hookrelay.utils.batch_helpers import chunk_list
from hookrelay.utils.logger import get_logger
from hookrelay.utils.timeutils import from_iso, to_iso

logger = get_logger(__name__)

LOCK_FIELDS = ('locked_at', 'locked_by')


def job_to_item(job: QueueJob) -> Dict[str, Any]:
    """Convert a QueueJob to a DynamoDB item."""
    item = job.model_dump()
    for field in ('scheduled_at', 'created_at', 'locked_at'):
        if item.get(field) is not None:
            item[field] = to_iso(item[field])
    return strip_none(item)


def item_to_job(item: Dict[str, Any]) -> QueueJob:
    """Convert a DynamoDB item back to a QueueJob."""
    data = dict(item)
    data['attempts'] = to_int(data.get('attempts', 0))
    data['max_attempts'] = to_int(data.get('max_attempts', 5))
    for field in ('scheduled_at', 'created_at', 'locked_at'):
        if field in data:
            data[field] = from_iso(data[field])
    return QueueJob(**data)


class DynamoDBQueueStore:
    """
    Repository for the queue table.

    Attributes:
        table_name: Name of the DynamoDB queue table
        dynamodb: boto3 DynamoDB resource
        table: boto3 DynamoDB table resource

    Example:
        >>> store = DynamoDBQueueStore(table_name="hookrelay-queue")
        >>> await store.put_job(job)
        >>> locked = await store.acquire_lock(job.job_id, "worker-1", now)
    """

    def __init__(self, table_name: str, dynamodb=None):
        """
        Initialize the queue store.

        Args:
            table_name: Name of the DynamoDB queue table
            dynamodb: Optional shared boto3 DynamoDB resource

        Raises:
            ValueError: If table_name is empty or invalid
        """
        if not table_name or not isinstance(table_name, str):
            raise ValueError("table_name must be a non-empty string")

        self.table_name = table_name
        self.dynamodb = dynamodb or create_dynamodb_resource()
        self.table = self.dynamodb.Table(table_name)

        logger.info("Queue store initialized", table_name=table_name)

    @storage_retry
    async def put_job(self, job: QueueJob) -> None:
        """
        Insert a new job.

        Raises:
            ClientError: If DynamoDB operation fails (including an id collision)
            ValueError: If job is not a QueueJob
        """
        if not isinstance(job, QueueJob):
            raise ValueError("job must be a QueueJob instance")

        try:
            self.table.put_item(
                Item=job_to_item(job),
                ConditionExpression='attribute_not_exists(job_id)'
            )
        except ClientError as e:
            log_client_error("Failed to store job", e, job_id=job.job_id, table_name=self.table_name)
            raise

        logger.debug(
            "Job stored",
            job_id=job.job_id,
            destination_id=job.destination_id,
            trigger=job.trigger_name,
            scheduled_at=to_iso(job.scheduled_at)
        )

    @storage_retry
    async def get_job(self, job_id: str) -> Optional[QueueJob]:
        """Fetch a job with a strongly consistent read; None if missing."""
        if not job_id or not isinstance(job_id, str):
            raise ValueError("job_id must be a non-empty string")

        try:
            response = self.table.get_item(Key={'job_id': job_id}, ConsistentRead=True)
        except ClientError as e:
            log_client_error("Failed to retrieve job", e, job_id=job_id, table_name=self.table_name)
            raise

        item = response.get('Item')
        return item_to_job(item) if item else None

    @storage_retry
    async def acquire_lock(
        self,
        job_id: str,
        token: str,
        now: datetime,
        from_statuses: Sequence[str] = (STATUS_PENDING,),
        due_only: bool = False
    ) -> Optional[QueueJob]:
        """
        Lock a job in a single conditional write.

        Succeeds only if the job exists, locked_at is unset and its status
        is one of ``from_statuses``; with ``due_only`` its scheduled_at must
        also be at or before ``now``. On success the job is moved to
        processing and stamped with the token.

        Returns:
            The job as stored after the write if this caller now owns it,
            None if another caller won or the job left the allowed statuses
        """
        status_values = {f':from{index}': status for index, status in enumerate(from_statuses)}
        condition = (
            'attribute_exists(job_id) AND attribute_not_exists(locked_at) '
            f'AND #status IN ({", ".join(status_values)})'
        )
        if due_only:
            condition += ' AND scheduled_at <= :now'

        try:
            response = self.table.update_item(
                Key={'job_id': job_id},
                UpdateExpression='SET locked_at = :now, locked_by = :token, #status = :processing',
                ConditionExpression=condition,
                ExpressionAttributeNames={'#status': 'status'},
                ExpressionAttributeValues={
                    ':now': to_iso(now),
                    ':token': token,
                    ':processing': STATUS_PROCESSING,
                    **status_values
                },
                ReturnValues='ALL_NEW'
            )
        except ClientError as e:
            if is_conditional_check_failure(e):
                logger.debug("Lock not acquired", job_id=job_id, locked_by=token)
                return None
            log_client_error("Failed to lock job", e, job_id=job_id, table_name=self.table_name)
            raise

        return item_to_job(response['Attributes'])

    @storage_retry
    async def update_job(
        self,
        job_id: str,
        fields: Dict[str, Any],
        clear_lock: bool = False
    ) -> bool:
        """
        Set fields on an existing job, optionally clearing the lock pair.

        Datetime values are serialized; None values are removed.

        Returns:
            True if the job existed and was updated, False if it is gone
        """
        set_parts = []
        remove_parts = list(LOCK_FIELDS) if clear_lock else []
        names: Dict[str, str] = {}
        values: Dict[str, Any] = {}

        for index, (field, value) in enumerate(fields.items()):
            if clear_lock and field in LOCK_FIELDS:
                continue
            names[f'#f{index}'] = field
            if value is None:
                remove_parts.append(f'#f{index}')
                continue
            if isinstance(value, datetime):
                value = to_iso(value)
            values[f':v{index}'] = value
            set_parts.append(f'#f{index} = :v{index}')

        expression = []
        if set_parts:
            expression.append('SET ' + ', '.join(set_parts))
        if remove_parts:
            expression.append('REMOVE ' + ', '.join(remove_parts))
        if not expression:
            return True

        kwargs: Dict[str, Any] = {
            'Key': {'job_id': job_id},
            'UpdateExpression': ' '.join(expression),
            'ConditionExpression': 'attribute_exists(job_id)',
        }
        if names:
            kwargs['ExpressionAttributeNames'] = names
        if values:
            kwargs['ExpressionAttributeValues'] = values

        try:
            self.table.update_item(**kwargs)
        except ClientError as e:
            if is_conditional_check_failure(e):
                logger.warning("Job not found for update", job_id=job_id)
                return False
            log_client_error("Failed to update job", e, job_id=job_id, table_name=self.table_name)
            raise

        return True

    @storage_retry
    async def release_stale_lock(self, job_id: str, observed_locked_at: str) -> bool:
        """
        Return a stale processing job to pending.

        Fenced on the locked_at value the caller observed, so concurrent
        sweepers reclaim a given lock at most once.
        """
        try:
            self.table.update_item(
                Key={'job_id': job_id},
                UpdateExpression='SET #status = :pending REMOVE locked_at, locked_by',
                ConditionExpression='#status = :processing AND locked_at = :seen',
                ExpressionAttributeNames={'#status': 'status'},
                ExpressionAttributeValues={
                    ':pending': STATUS_PENDING,
                    ':processing': STATUS_PROCESSING,
                    ':seen': observed_locked_at
                }
            )
        except ClientError as e:
            if is_conditional_check_failure(e):
                return False
            log_client_error("Failed to release stale lock", e, job_id=job_id, table_name=self.table_name)
            raise

        return True

    def _query_index(self, **kwargs: Any) -> Dict[str, Any]:
        return self.table.query(IndexName=QUEUE_STATUS_INDEX, **kwargs)

    @storage_retry
    async def find_due(self, now: datetime, limit: int) -> List[QueueJob]:
        """
        Pending, unlocked jobs with scheduled_at <= now, oldest first.

        Reads StatusScheduledIndex, which is eventually consistent; the
        conditional lock is what decides ownership.
        """
        if limit <= 0:
            raise ValueError("limit must be positive")

        jobs: List[QueueJob] = []
        kwargs: Dict[str, Any] = {
            'KeyConditionExpression': Key('status').eq(STATUS_PENDING) & Key('scheduled_at').lte(to_iso(now)),
            'FilterExpression': Attr('locked_at').not_exists(),
            'ScanIndexForward': True,
            'Limit': limit,
        }

        try:
            while len(jobs) < limit:
                response = self._query_index(**kwargs)
                jobs.extend(item_to_job(item) for item in response.get('Items', []))
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
                kwargs['ExclusiveStartKey'] = last_key
        except ClientError as e:
            log_client_error("Failed to query due jobs", e, table_name=self.table_name)
            raise

        return jobs[:limit]

    @storage_retry
    async def find_stale(self, locked_before: datetime) -> List[QueueJob]:
        """Processing jobs whose lock was taken before the threshold."""
        jobs: List[QueueJob] = []
        kwargs: Dict[str, Any] = {
            'KeyConditionExpression': Key('status').eq(STATUS_PROCESSING),
            'FilterExpression': Attr('locked_at').lt(to_iso(locked_before)),
        }

        try:
            while True:
                response = self._query_index(**kwargs)
                jobs.extend(item_to_job(item) for item in response.get('Items', []))
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
                kwargs['ExclusiveStartKey'] = last_key
        except ClientError as e:
            log_client_error("Failed to query stale jobs", e, table_name=self.table_name)
            raise

        return jobs

    @storage_retry
    async def count_by_status(self, status: str, scheduled_before: Optional[datetime] = None) -> int:
        """Count jobs in a status, optionally only those due by a time."""
        condition = Key('status').eq(status)
        if scheduled_before is not None:
            condition = condition & Key('scheduled_at').lte(to_iso(scheduled_before))

        kwargs: Dict[str, Any] = {'KeyConditionExpression': condition, 'Select': 'COUNT'}
        total = 0
        try:
            while True:
                response = self._query_index(**kwargs)
                total += response.get('Count', 0)
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
                kwargs['ExclusiveStartKey'] = last_key
        except ClientError as e:
            log_client_error("Failed to count jobs", e, status=status, table_name=self.table_name)
            raise

        return total

    @storage_retry
    async def oldest_pending_scheduled_at(self) -> Optional[datetime]:
        try:
            response = self._query_index(
                KeyConditionExpression=Key('status').eq(STATUS_PENDING),
                ScanIndexForward=True,
                Limit=1
            )
        except ClientError as e:
            log_client_error("Failed to query oldest pending job", e, table_name=self.table_name)
            raise

        items = response.get('Items', [])
        return from_iso(items[0]['scheduled_at']) if items else None

    @storage_retry
    async def list_jobs(
        self,
        status: Optional[str] = None,
        limit: int = 50,
        cursor: Optional[str] = None
    ) -> Tuple[List[QueueJob], Optional[str]]:
        """
        List jobs with cursor-based pagination.

        With a status the index is queried latest scheduled first;
        without one the table is scanned.

        Returns:
            (jobs, next_cursor) where next_cursor is None on the last page
        """
        if limit <= 0 or limit > 100:
            raise ValueError("limit must be between 1 and 100")

        kwargs: Dict[str, Any] = {'Limit': limit}
        start_key = decode_cursor(cursor)
        if start_key:
            kwargs['ExclusiveStartKey'] = start_key

        try:
            if status:
                response = self._query_index(
                    KeyConditionExpression=Key('status').eq(status),
                    ScanIndexForward=False,
                    **kwargs
                )
            else:
                response = self.table.scan(**kwargs)
        except ClientError as e:
            log_client_error("Failed to list jobs", e, status=status, table_name=self.table_name)
            raise

        jobs = [item_to_job(item) for item in response.get('Items', [])]
        return jobs, encode_cursor(response.get('LastEvaluatedKey'))

    @storage_retry
    async def delete_job(self, job_id: str) -> bool:
        """Delete a job; False if it did not exist."""
        try:
            response = self.table.delete_item(Key={'job_id': job_id}, ReturnValues='ALL_OLD')
        except ClientError as e:
            log_client_error("Failed to delete job", e, job_id=job_id, table_name=self.table_name)
            raise

        return 'Attributes' in response

    @storage_retry
    async def find_completed_before(self, created_before: datetime) -> List[str]:
        """Ids of completed jobs created before the threshold."""
        job_ids: List[str] = []
        kwargs: Dict[str, Any] = {
            'KeyConditionExpression': Key('status').eq(STATUS_COMPLETED),
            'FilterExpression': Attr('created_at').lt(to_iso(created_before)),
        }
        try:
            while True:
                response = self._query_index(**kwargs)
                job_ids.extend(item['job_id'] for item in response.get('Items', []))
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
                kwargs['ExclusiveStartKey'] = last_key
        except ClientError as e:
            log_client_error("Failed to query completed jobs", e, table_name=self.table_name)
            raise

        return job_ids

    async def delete_jobs(self, job_ids: List[str]) -> int:
        """
        Delete jobs in chunks of 25 (DynamoDB batch_write_item limit).

        Returns:
            Number of deletions DynamoDB accepted
        """
        deleted = 0
        for chunk_idx, chunk in enumerate(chunk_list(job_ids)):
            try:
                response = self.dynamodb.batch_write_item(
                    RequestItems={
                        self.table_name: [
                            {'DeleteRequest': {'Key': {'job_id': job_id}}}
                            for job_id in chunk
                        ]
                    }
                )
            except ClientError as e:
                log_client_error(
                    "Failed to delete job chunk",
                    e,
                    chunk_index=chunk_idx,
                    chunk_size=len(chunk),
                    table_name=self.table_name
                )
                raise

            unprocessed = response.get('UnprocessedItems', {}).get(self.table_name, [])
            if unprocessed:
                # Left for the next sweep
                logger.warning(
                    "Some deletions not processed",
                    chunk_index=chunk_idx,
                    unprocessed_count=len(unprocessed),
                    table_name=self.table_name
                )
            deleted += len(chunk) - len(unprocessed)

        return deleted
