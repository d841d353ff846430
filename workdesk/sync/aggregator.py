"""Aggregator — pure, read-only summaries over a cache snapshot.

Nothing here touches the network or mutates its input; the functions are
safe to call on every view render.
"""

from __future__ import annotations

import enum
from collections import Counter
from typing import Any, Callable, Hashable, Iterable, Mapping, Optional, Sequence, TypeVar

from workdesk.common.constants import UNASSIGNED, WORKLOAD_TOP_K

T = TypeVar("T")


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, enum.Enum) else value


def capitalize(label: str) -> str:
    """Upper-case the first character only: ``in_progress`` → ``In_progress``."""
    return label[:1].upper() + label[1:]


def count_by_status(entities: Iterable[Any], field: str = "status") -> dict[str, int]:
    """``{Capitalized status: count}`` in first-occurrence order."""
    counts: dict[str, int] = {}
    for entity in entities:
        label = capitalize(str(_plain(getattr(entity, field))))
        counts[label] = counts.get(label, 0) + 1
    return counts


def top_by_assignee(
    entities: Iterable[Any],
    names: Mapping[Hashable, str],
    *,
    field: str = "assignee_id",
    limit: int = WORKLOAD_TOP_K,
) -> dict[str, int]:
    """``{assignee name: count}``, busiest first, at most *limit* entries.

    A missing or unresolvable assignee counts as ``"Unassigned"``. Ties keep
    first-occurrence order (the sort is stable).
    """
    counts: Counter[str] = Counter()
    for entity in entities:
        ref = getattr(entity, field)
        name = names.get(ref) if ref is not None else None
        counts[name or UNASSIGNED] += 1
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return dict(ranked[:limit])


def count_where(entities: Iterable[T], predicate: Callable[[T], bool]) -> int:
    return sum(1 for e in entities if predicate(e))


def partition_by(
    entities: Sequence[T],
    field: str,
    values: Iterable[Any],
    *,
    include_all: bool = True,
) -> dict[str, list[T]]:
    """Bucket entities into tabs keyed by *values*, plus an ``all`` tab."""
    buckets: dict[str, list[T]] = {"all": list(entities)} if include_all else {}
    for value in values:
        key = str(_plain(value))
        buckets[key] = [e for e in entities if _plain(getattr(e, field)) == key]
    return buckets


def search(
    entities: Iterable[T],
    query: Optional[str],
    fields: Sequence[str],
    *,
    resolve: Optional[Callable[[T, str], Any]] = None,
) -> list[T]:
    """Case-insensitive substring filter across *fields*; empty query keeps all."""
    items = list(entities)
    if not query:
        return items
    needle = query.lower()
    get = resolve or (lambda e, f: getattr(e, f, None))
    return [
        e for e in items
        if any(needle in str(get(e, f) or "").lower() for f in fields)
    ]
