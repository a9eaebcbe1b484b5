"""
Module: paths.py
Description: Dot-notation path helpers for nested JSON payloads.

Paths join keys with '.', and list positions appear as their index
('items.0.sku'). Flattening descends into non-empty dicts and lists up
to MAX_FLATTEN_DEPTH levels; anything deeper is kept verbatim at the
path where the cap was hit. Empty containers are leaves.

Key Components:
- flatten(): nested document -> {path: leaf value}
- get_value_by_path(): read a path, MISSING if absent
- set_value_by_path(): write a path, creating intermediate containers

Author: Hookrelay Team
"""

from typing import Any, Dict, List, Union

MAX_FLATTEN_DEPTH = 10

Container = Union[Dict[str, Any], List[Any]]


class _Missing:
    """Sentinel for a path that does not resolve."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def is_index(segment: str) -> bool:
    """
    True for path segments that address a list position.

    Only canonical ASCII integers qualify: '01' and '²' are dict keys.
    """
    return segment.isascii() and segment.isdigit() and (segment == "0" or not segment.startswith("0"))


def flatten(document: Any, prefix: str = "", depth: int = 0, max_depth: int = MAX_FLATTEN_DEPTH) -> Dict[str, Any]:
    """
    Flatten a nested document into dot-notation paths.

    Args:
        document: Dict or list to flatten
        prefix: Path of ``document`` within the root document
        depth: Current recursion depth
        max_depth: Depth beyond which subtrees are kept verbatim

    Returns:
        Ordered mapping of path to leaf value

    Examples:
        >>> flatten({'a': {'b': 1}, 'tags': ['x', 'y'], 'empty': {}})
        {'a.b': 1, 'tags.0': 'x', 'tags.1': 'y', 'empty': {}}
    """
    if depth > max_depth:
        return {prefix: document}

    if isinstance(document, dict):
        items = ((str(key), value) for key, value in document.items())
    else:
        items = ((str(index), value) for index, value in enumerate(document))

    result: Dict[str, Any] = {}
    for key, value in items:
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(value, (dict, list)) and value:
            result.update(flatten(value, path, depth + 1, max_depth))
        else:
            result[path] = value

    return result


def get_value_by_path(document: Any, path: str) -> Any:
    """
    Resolve a dot-notation path.

    Returns:
        The value at ``path`` (which may be None), or MISSING
    """
    current = document
    for segment in path.split("."):
        if isinstance(current, dict):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, list):
            if not is_index(segment) or int(segment) >= len(current):
                return MISSING
            current = current[int(segment)]
        else:
            return MISSING
    return current


def _as_dict(values: List[Any]) -> Dict[str, Any]:
    return {str(index): value for index, value in enumerate(values)}


def _set_child(container: Container, segment: str, value: Any) -> Container:
    """
    Assign container[segment] = value, returning the (possibly replaced) container.

    Lists only grow by appending. A non-index segment, or an index past
    the end of the list, turns the list into a dict keyed by position so
    no placeholder elements are invented.
    """
    if isinstance(container, list):
        if not is_index(segment):
            container = _as_dict(container)
            container[segment] = value
            return container
        index = int(segment)
        if index > len(container):
            container = _as_dict(container)
            container[segment] = value
        elif index == len(container):
            container.append(value)
        else:
            container[index] = value
        return container

    container[segment] = value
    return container


def _get_child(container: Container, segment: str) -> Any:
    if isinstance(container, list):
        index = int(segment) if is_index(segment) else -1
        return container[index] if 0 <= index < len(container) else None
    return container.get(segment)


def set_value_by_path(document: Dict[str, Any], path: str, value: Any) -> Dict[str, Any]:
    """
    Write ``value`` at ``path`` inside ``document``.

    Missing intermediate containers are created as lists when the next
    segment is numeric and as dicts otherwise; a sparse index then turns
    the new list into a dict. Scalars in the way are
    replaced. The root is always a dict.

    Returns:
        The updated document (the same object that was passed in)
    """
    segments = path.split(".")

    def assign(container: Container, index: int) -> Container:
        segment = segments[index]
        if index == len(segments) - 1:
            return _set_child(container, segment, value)

        child = _get_child(container, segment)
        if not isinstance(child, (dict, list)):
            child = [] if is_index(segments[index + 1]) else {}
        return _set_child(container, segment, assign(child, index + 1))

    assign(document, 0)
    return document
