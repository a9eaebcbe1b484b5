"""
Module: errors.py
Description: Exception types raised by hookrelay.

Storage errors are not wrapped: botocore ClientError propagates from the
store as-is, the same way the DynamoDB client has always surfaced it.
"""

from typing import Optional


class HookrelayError(Exception):
    """Base class for hookrelay errors."""


class JobNotFoundError(HookrelayError, LookupError):
    """Raised when an operator action names a job that does not exist."""

    def __init__(self, job_id: str):
        super().__init__(f"Queue job not found: {job_id}")
        self.job_id = job_id


class JobStateError(HookrelayError):
    """Raised when a job is in a state that forbids the requested action."""

    def __init__(self, job_id: str, status: str, message: str):
        super().__init__(message)
        self.job_id = job_id
        self.status = status


class EnvelopeDecodeError(HookrelayError, ValueError):
    """Raised when a stored job envelope cannot be decoded."""


class InvalidEndpointError(HookrelayError, ValueError):
    """Raised for malformed or policy-violating endpoint URLs."""


class TransportError(HookrelayError):
    """
    Network-level delivery failure (timeout, DNS, refused connection).

    Attributes:
        transient: Whether another attempt may succeed
    """

    def __init__(self, message: str, transient: bool = True, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.transient = transient
        self.cause = cause
