"""
Module: hooks.py
Description: Extension points for the dispatcher.

DispatchHooks is a plain registry passed to the Dispatcher at
construction. Callables may be sync or async.

- should_dispatch(trigger, args) -> bool: any False vetoes the firing
- payload filter (payload, trigger, args) -> payload
- header injector (headers, destination, trigger) -> headers
- on_success(trigger, url, payload, status_code)
- on_error(trigger, url, error)

Veto predicates and filters propagate their exceptions. Success and
error listeners are notified best-effort: a failing listener is logged
and never affects the delivery outcome.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Union

from hookrelay.models.destination import Destination
from hookrelay.utils.logger import get_logger

logger = get_logger(__name__)

DispatchPredicate = Callable[[str, Any], Union[bool, Awaitable[bool]]]
PayloadFilter = Callable[[Dict[str, Any], str, Any], Union[Dict[str, Any], Awaitable[Dict[str, Any]]]]
HeaderInjector = Callable[[Dict[str, str], Destination, str], Union[Dict[str, str], Awaitable[Dict[str, str]]]]
SuccessListener = Callable[[str, str, Dict[str, Any], int], Any]
ErrorListener = Callable[[str, str, str], Any]


async def _call(fn: Callable, *args: Any) -> Any:
    result = fn(*args)
    if asyncio.iscoroutine(result):
        result = await result
    return result


class DispatchHooks:
    """Callback registry consulted by the dispatcher."""

    def __init__(self):
        self._predicates: List[DispatchPredicate] = []
        self._payload_filters: List[PayloadFilter] = []
        self._header_injectors: List[HeaderInjector] = []
        self._success_listeners: List[SuccessListener] = []
        self._error_listeners: List[ErrorListener] = []

    def add_dispatch_predicate(self, predicate: DispatchPredicate) -> None:
        self._predicates.append(predicate)

    def add_payload_filter(self, payload_filter: PayloadFilter) -> None:
        self._payload_filters.append(payload_filter)

    def add_header_injector(self, injector: HeaderInjector) -> None:
        self._header_injectors.append(injector)

    def add_success_listener(self, listener: SuccessListener) -> None:
        self._success_listeners.append(listener)

    def add_error_listener(self, listener: ErrorListener) -> None:
        self._error_listeners.append(listener)

    async def should_dispatch(self, trigger: str, args: Any) -> bool:
        for predicate in self._predicates:
            if not await _call(predicate, trigger, args):
                return False
        return True

    async def filter_payload(self, payload: Dict[str, Any], trigger: str, args: Any) -> Dict[str, Any]:
        for payload_filter in self._payload_filters:
            payload = await _call(payload_filter, payload, trigger, args)
        return payload

    async def inject_headers(
        self,
        headers: Dict[str, str],
        destination: Destination,
        trigger: str
    ) -> Dict[str, str]:
        for injector in self._header_injectors:
            headers = await _call(injector, dict(headers), destination, trigger)
        return headers

    async def notify_success(self, trigger: str, url: str, payload: Dict[str, Any], status_code: int) -> None:
        for listener in self._success_listeners:
            try:
                await _call(listener, trigger, url, payload, status_code)
            except Exception as e:
                logger.warning("Success listener failed", trigger=trigger, error=str(e))

    async def notify_error(self, trigger: str, url: str, error: str) -> None:
        for listener in self._error_listeners:
            try:
                await _call(listener, trigger, url, error)
            except Exception as e:
                logger.warning("Error listener failed", trigger=trigger, error=str(e))
