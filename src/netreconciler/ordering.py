"""Presents freshly observed collections in the caller's order.

The remote API does not preserve the order entities were declared in, so
the fresh collection is mapped back onto the caller's sequence before it is
returned. Without this a follow-up reconciliation would report drift that
is only a reordering.
"""

from __future__ import annotations

from typing import Callable, Hashable, Iterable, Sequence, TypeVar

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


def reorder_to_match(order: Sequence[K], fresh: Iterable[T], key: Callable[[T], K]) -> list[T]:
    """Order ``fresh`` entities by ``order``, falling back to ascending key.

    Keys listed in ``order`` come first in that sequence; the rest follow in
    ascending key order. When the two collections differ in size, the fresh
    entities are returned in ascending key order only. Entities sharing a key
    stay adjacent and none are dropped.
    """
    items = list(fresh)
    fallback = sorted(items, key=key)  # type: ignore[arg-type]
    if len(items) != len(order):
        return fallback

    by_key: dict[K, list[T]] = {}
    for item in fallback:
        by_key.setdefault(key(item), []).append(item)
    result: list[T] = []
    for k in dict.fromkeys(order):
        result.extend(by_key.pop(k, ()))
    result.extend(item for item in fallback if key(item) in by_key)
    return result


def reorder_ids(previous: Sequence[str], fresh: Iterable[str]) -> list[str]:
    """Apply the same ordering rule to a list of plain ids."""
    return reorder_to_match(previous, fresh, key=lambda value: value)
