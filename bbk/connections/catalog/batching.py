"""Splitting of action item lists into sequential upload pages."""

from collections.abc import Iterator, Sequence
from typing import TypeVar

T = TypeVar("T")


def iter_batches(items: Sequence[T], page_size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of at most ``page_size`` items, in order."""
    if page_size < 1:
        raise ValueError("page_size must be greater than zero")

    for start in range(0, len(items), page_size):
        yield list(items[start:start + page_size])


def count_batches(total: int, page_size: int) -> int:
    if page_size < 1:
        raise ValueError("page_size must be greater than zero")
    return -(-total // page_size)
