"""
Module: metrics.py
Description: CloudWatch custom metrics for the delivery worker.

Publishes one data point per batch counter after each process_batch
run so queue throughput and failure rates can be alarmed on.

Key Components:
- MetricsClient: CloudWatch metrics client
- put_metric(): Publish individual metrics
- publish_batch_summary(): Publish the counters of one batch run

Dependencies: boto3, typing, logger
Author: Hookrelay Team
"""

from typing import Any, Dict, Optional

import boto3

from hookrelay.utils.logger import get_logger

logger = get_logger(__name__)

# Summary key -> CloudWatch metric name
BATCH_METRICS = {
    'processed': 'JobsProcessed',
    'succeeded': 'DeliveriesSucceeded',
    'failed': 'DeliveriesPermanentlyFailed',
    'rescheduled': 'DeliveriesRescheduled',
    'stale_cleaned': 'StaleLocksReclaimed',
}


class MetricsClient:
    """CloudWatch metrics client."""

    def __init__(self, namespace: str = "Hookrelay", region_name: Optional[str] = None):
        """
        Initialize metrics client.

        Args:
            namespace: CloudWatch metrics namespace
            region_name: AWS region for the CloudWatch client
        """
        self.namespace = namespace
        self.cloudwatch = boto3.client('cloudwatch', region_name=region_name)

        logger.info(
            "Metrics client initialized",
            namespace=namespace
        )

    def put_metric(
        self,
        metric_name: str,
        value: float,
        unit: str = 'Count',
        dimensions: Optional[Dict[str, str]] = None
    ) -> bool:
        """
        Publish a metric to CloudWatch.

        Args:
            metric_name: Name of the metric
            value: Metric value
            unit: Metric unit (Count, Seconds, etc.)
            dimensions: Optional metric dimensions

        Returns:
            True if the data point was accepted, False otherwise
        """
        metric_data: Dict[str, Any] = {
            'MetricName': metric_name,
            'Value': value,
            'Unit': unit
        }
        if dimensions:
            metric_data['Dimensions'] = [
                {'Name': k, 'Value': v}
                for k, v in dimensions.items()
            ]

        try:
            self.cloudwatch.put_metric_data(
                Namespace=self.namespace,
                MetricData=[metric_data]
            )
        except Exception as e:
            # Metrics never fail a delivery batch
            logger.warning(
                "Failed to publish metric",
                metric_name=metric_name,
                value=value,
                error=str(e),
                namespace=self.namespace
            )
            return False

        logger.debug(
            "Metric published to CloudWatch",
            metric_name=metric_name,
            value=value,
            unit=unit,
            namespace=self.namespace
        )
        return True

    def publish_batch_summary(self, summary: Dict[str, int], stage: Optional[str] = None) -> int:
        """
        Publish the counters of one process_batch run.

        Args:
            summary: Batch summary as returned by Dispatcher.process_batch
            stage: Optional deployment stage dimension

        Returns:
            Number of metrics published successfully
        """
        dimensions = {'Stage': stage} if stage else None
        published = 0
        for key, metric_name in BATCH_METRICS.items():
            if key not in summary:
                continue
            if self.put_metric(metric_name, float(summary[key]), dimensions=dimensions):
                published += 1
        return published
