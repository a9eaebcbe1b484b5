"""
Module: models
Description: Package initialization for Pydantic data models.

This package contains the domain models of the delivery engine:
- QueueJob: durable delivery job
- DeliveryLog / AttemptRecord: audit trail of deliveries
- JobEnvelope: immutable snapshot carried by a job
- Destination, TriggerSchema, FieldMapping, Actor

All models are exported here for convenient importing.
"""

from .actor import Actor
from .delivery_log import AttemptRecord, DeliveryLog
from .destination import Destination
from .envelope import JobEnvelope
from .job import QueueJob
from .schema import FieldMapping, FieldMappingRule, TriggerSchema

__all__ = [
    "Actor",
    "AttemptRecord",
    "DeliveryLog",
    "Destination",
    "FieldMapping",
    "FieldMappingRule",
    "JobEnvelope",
    "QueueJob",
    "TriggerSchema",
]
