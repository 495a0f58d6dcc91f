"""Typed find criteria shared by every node store.

A :class:`Filter` is an AND of criteria.  The hierarchy engine never
replaces a caller's filter; it ANDs its own predicate onto it::

    Filter.where(status="active").and_(Eq("parent", node.id))

Field names other than the stored columns (``id``, ``parent``, ``path``,
``created_at``, ``updated_at``) address top-level payload keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union


@dataclass(frozen=True)
class Eq:
    """``field == value``; a ``None`` value matches missing / NULL."""

    field: str
    value: Any


@dataclass(frozen=True)
class StartsWith:
    """``field`` is a string beginning with ``prefix`` (raw, no wildcards)."""

    field: str
    prefix: str


@dataclass(frozen=True)
class In:
    """``field`` equals one of ``values``; an empty set matches nothing."""

    field: str
    values: tuple[Any, ...]

    def __init__(self, field: str, values: Iterable[Any]) -> None:
        object.__setattr__(self, "field", field)
        object.__setattr__(self, "values", tuple(values))


Criterion = Union[Eq, StartsWith, In]


@dataclass(frozen=True)
class Filter:
    criteria: tuple[Criterion, ...] = ()

    @classmethod
    def where(cls, **equals: Any) -> Filter:
        """Build a filter of equality criteria from keyword arguments."""
        return cls(tuple(Eq(name, value) for name, value in equals.items()))

    def and_(self, *criteria: Criterion) -> Filter:
        """Return a new filter with ``criteria`` appended."""
        return Filter(self.criteria + tuple(criteria))

    def __bool__(self) -> bool:
        return bool(self.criteria)


@dataclass(frozen=True)
class FindOptions:
    """Sort and paging for :meth:`NodeStore.find`."""

    order_by: Optional[str] = None
    descending: bool = False
    limit: Optional[int] = None
    skip: int = 0


FilterLike = Union[Filter, Mapping[str, Any], None]


def as_filter(value: FilterLike) -> Filter:
    """Coerce ``None`` / a plain ``{field: value}`` mapping into a Filter."""
    if value is None:
        return Filter()
    if isinstance(value, Filter):
        return value
    if isinstance(value, Mapping):
        return Filter.where(**dict(value))
    raise TypeError(f"Unsupported filter type: {type(value).__name__}")


def merge_filter(base: FilterLike, *criteria: Criterion) -> Filter:
    """AND ``criteria`` onto a caller-supplied filter.

    Nothing in ``base`` is dropped or overridden: if the caller already
    constrains the same field, both constraints apply.
    """
    return as_filter(base).and_(*criteria)


__all__ = [
    "Criterion",
    "Eq",
    "Filter",
    "FilterLike",
    "FindOptions",
    "In",
    "StartsWith",
    "as_filter",
    "merge_filter",
]
