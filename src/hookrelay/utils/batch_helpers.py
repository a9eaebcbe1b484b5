"""
Module: batch_helpers.py
Description: Chunking helper for DynamoDB batch writes.

DynamoDB batch_write_item accepts at most 25 requests per call; the
retention sweep splits its deletions with chunk_list().
"""

from typing import List, TypeVar

T = TypeVar('T')

DYNAMODB_BATCH_WRITE_LIMIT = 25


def chunk_list(items: List[T], chunk_size: int = DYNAMODB_BATCH_WRITE_LIMIT) -> List[List[T]]:
    """
    Split a list into smaller chunks of specified size.

    Args:
        items: List to split into chunks
        chunk_size: Maximum size of each chunk

    Returns:
        List of chunks, where each chunk is a list of items

    Raises:
        ValueError: If chunk_size is not positive

    Example:
        >>> chunk_list([1, 2, 3, 4, 5], 2)
        [[1, 2], [3, 4], [5]]
    """
    if not isinstance(items, list):
        raise ValueError("items must be a list")
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    return [items[i:i + chunk_size] for i in range(0, len(items), chunk_size)]
