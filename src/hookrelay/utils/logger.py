"""
Module: logger.py
Description: Structured logging configuration for hookrelay.

Configures structlog for JSON output. Every module obtains its logger
through get_logger(__name__) and logs key/value events (job_id, log_id,
destination_id, trigger) instead of formatted strings.

Delivery code runs each job inside delivery_context(), so every line
written while a job is being delivered carries its job_id and the lock
token of the worker run, including lines from the store and transport
layers that never see the job itself.

Destination credentials travel in auth headers; they are masked before
rendering.

Key Components:
- JSON output for log aggregation
- Timestamp, log level and component processors
- Credential redaction
- delivery_context(): per-job context binding
- get_logger() helper function

Dependencies: structlog, logging, datetime
Author: Hookrelay Team
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

import structlog

from hookrelay.config.settings import settings

# Event keys whose values are destination credentials
REDACTED_KEYS = frozenset({'auth_header', 'authorization'})
REDACTED = "[redacted]"


def _add_timestamp(logger, method_name, event_dict):
    """Add an ISO 8601 UTC timestamp with a Z suffix."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return event_dict


def _add_log_level(logger, method_name, event_dict):
    event_dict["level"] = method_name.upper()
    return event_dict


def _redact_credentials(logger, method_name, event_dict):
    """
    Mask destination credentials, including inside a logged headers dict.

    Args:
        logger: Logger instance
        method_name: Log method name (info, error, etc.)
        event_dict: Current log event dictionary

    Returns:
        Event dictionary with credential values replaced
    """
    for key in list(event_dict):
        if key.lower() in REDACTED_KEYS and event_dict[key]:
            event_dict[key] = REDACTED

    headers = event_dict.get("headers")
    if isinstance(headers, dict):
        event_dict["headers"] = {
            name: REDACTED if name.lower() in REDACTED_KEYS else value
            for name, value in headers.items()
        }
    return event_dict


structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        _add_timestamp,
        _add_log_level,
        _redact_credentials,
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(default=str),
    ],
    logger_factory=structlog.WriteLoggerFactory(),
    # Drops records below the configured level before any processor runs
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(settings.log_level)
    ),
    cache_logger_on_first_use=True,
)


@contextmanager
def delivery_context(**fields: Any) -> Iterator[None]:
    """
    Bind fields to every log line written inside the block.

    Fields are restored to their previous values on exit, so nested
    contexts and concurrent tasks do not leak into each other.

    Example:
        >>> with delivery_context(job_id=job.job_id, lock_token=token):
        ...     await dispatcher.send_to_webhook(...)
    """
    with structlog.contextvars.bound_contextvars(**fields):
        yield


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    """
    Get a configured structlog logger instance.

    Every line carries the emitting module as ``component``.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Job locked", job_id="job_1a2b3c4d5e6f", locked_by="worker-1")
        {"component": "hookrelay.job_queue.service", "job_id": "job_1a2b3c4d5e6f", "locked_by": "worker-1", "event": "Job locked", "timestamp": "...", "level": "INFO"}
    """
    return structlog.get_logger(name).bind(component=name)
