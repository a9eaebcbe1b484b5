"""
Module: delivery/worker.py
Description: Scheduled worker Lambda for queued deliveries.

Invoked by an EventBridge schedule (every minute) or manually. Each
invocation runs one process_batch() and returns its summary. Several
invocations may overlap; the conditional job lock keeps them from
delivering the same job concurrently.

Event shapes:
    {}                                     -> process one batch of settings.batch_size
    {"batch_size": 25}                     -> process one batch of 25
    {"action": "cleanup_completed"}        -> retention sweep of completed jobs
"""

import asyncio
from typing import Any, Dict

import httpx

from hookrelay.bootstrap import build_dispatcher
from hookrelay.config.settings import settings
from hookrelay.delivery.transport import HttpTransport
from hookrelay.utils.logger import get_logger
from hookrelay.utils.metrics import MetricsClient

logger = get_logger(__name__)


async def _process(batch_size: int) -> Dict[str, int]:
    async with httpx.AsyncClient() as client:
        dispatcher = build_dispatcher(settings, transport=HttpTransport(client))
        summary = await dispatcher.process_batch(batch_size)
    return summary.model_dump()


async def _cleanup_completed(older_than_days: int) -> int:
    dispatcher = build_dispatcher(settings)
    return await dispatcher.queue.cleanup_completed(older_than_days)


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler for scheduled queue processing.

    Args:
        event: Scheduler event (see module docstring)
        context: Lambda context

    Returns:
        Batch summary, or {"deleted": n} for the retention sweep
    """
    event = event or {}

    if event.get('action') == 'cleanup_completed':
        older_than_days = int(event.get('older_than_days', settings.completed_retention_days))
        deleted = asyncio.run(_cleanup_completed(older_than_days))
        logger.info("Retention sweep finished", deleted=deleted, older_than_days=older_than_days)
        return {'deleted': deleted}

    batch_size = int(event.get('batch_size', settings.batch_size))
    summary = asyncio.run(_process(batch_size))

    if settings.metrics_enabled:
        metrics = MetricsClient(namespace=settings.metrics_namespace, region_name=settings.aws_region)
        metrics.publish_batch_summary(summary, stage=settings.stage)

    logger.info(
        "Worker run finished",
        request_id=getattr(context, 'aws_request_id', None),
        **summary
    )
    return summary
