"""
Module: utils
Description: Package initialization for utility functions.

Shared helpers used throughout hookrelay:
- logger: structured logging configuration
- metrics: CloudWatch batch metrics
- timeutils: UTC timestamp serialization
- batch_helpers: list chunking for DynamoDB batch writes
"""

__all__ = []
