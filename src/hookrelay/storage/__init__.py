"""
Module: storage
Description: Package initialization for the durable store.

DynamoDB repositories used by the delivery engine:
- queue_store: queue jobs and the conditional lock
- log_store: delivery logs and attempt history
- schema_store: per (destination, trigger) transformation schemas
- destinations: read-only destination directory
- tables: table definitions and provisioning
"""

__all__ = []
