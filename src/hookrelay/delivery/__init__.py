"""
Package: delivery
Description: Event dispatch, HTTP delivery and delivery log bookkeeping.
"""

from .dispatcher import BatchSummary, DeliveryOutcome, Dispatcher, DispatchResult, ExecutionResult
from .hooks import DispatchHooks
from .log_service import DeliveryLogService
from .transport import HttpTransport, TransportResponse

__all__ = [
    "BatchSummary",
    "DeliveryLogService",
    "DeliveryOutcome",
    "DispatchHooks",
    "DispatchResult",
    "Dispatcher",
    "ExecutionResult",
    "HttpTransport",
    "TransportResponse",
]
