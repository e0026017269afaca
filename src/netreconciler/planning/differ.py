"""Pure difference of two keyed collections."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Hashable, Iterable, Mapping, TypeVar

from netreconciler.core.errors import PlanningError

K = TypeVar("K", bound=Hashable)
D = TypeVar("D")
O = TypeVar("O")  # noqa: E741
T = TypeVar("T")


@dataclass(frozen=True)
class EntityDiff(Generic[K]):
    """Disjoint key sets produced by :func:`diff_entities`.

    ``to_create`` and ``to_update`` follow desired order, ``to_delete``
    follows observed order.
    """

    to_create: tuple[K, ...] = ()
    to_update: tuple[K, ...] = ()
    to_delete: tuple[K, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.to_create or self.to_update or self.to_delete)


def diff_entities(
    desired: Mapping[K, D],
    observed: Mapping[K, O],
    equal: Callable[[D, O], bool] | None = None,
) -> EntityDiff[K]:
    """Compute create/update/delete keys between desired and observed maps.

    ``equal`` reports whether a key present on both sides already matches;
    without it no key is ever an update (identity-only collections).
    """
    to_create = tuple(key for key in desired if key not in observed)
    to_delete = tuple(key for key in observed if key not in desired)
    if equal is None:
        to_update: tuple[K, ...] = ()
    else:
        to_update = tuple(
            key for key in desired if key in observed and not equal(desired[key], observed[key])
        )
    return EntityDiff(to_create=to_create, to_update=to_update, to_delete=to_delete)


def index_by_key(items: Iterable[T], key: Callable[[T], K], *, what: str = "entity") -> dict[K, T]:
    """Index items by key, rejecting duplicates."""
    indexed: dict[K, T] = {}
    for item in items:
        item_key = key(item)
        if item_key in indexed:
            raise PlanningError(
                f"Duplicate {what} key in collection: {item_key}",
                {"key": item_key},
            )
        indexed[item_key] = item
    return indexed


def split_duplicates(items: Iterable[T], key: Callable[[T], K]) -> tuple[dict[K, T], list[T]]:
    """Index items by key keeping the first copy; return surplus copies separately."""
    indexed: dict[K, T] = {}
    surplus: list[T] = []
    for item in items:
        item_key = key(item)
        if item_key in indexed:
            surplus.append(item)
        else:
            indexed[item_key] = item
    return indexed, surplus
