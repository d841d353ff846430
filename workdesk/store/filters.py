"""Translate a ``Query`` filter descriptor into SQLAlchemy ``Select`` clauses."""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import Select, String, and_, cast, or_
from sqlalchemy.orm import InstrumentedAttribute

from workdesk.sync.remote import Query, RemoteError


# ── Filtering ───────────────────────────────────────────────────────

def apply_filters(query: Select, model: Any, descriptor: Query) -> Select:
    """
    Apply the descriptor's conditions and search to a ``Select``.

    ============  ==================
    Operator      SQL
    ============  ==================
    ``eq``        ``==`` (``IS NULL`` for ``None``)
    ``neq``       ``!=``
    ``gte``       ``>=``
    ``lte``       ``<=``
    ``in``        ``IN (…)``
    search        ``ILIKE '%…%'`` on any search column
    ============  ==================
    """
    conditions: list = []

    for cond in descriptor.conditions:
        col = _require_column(model, cond.column)
        if cond.op == "eq":
            conditions.append(col.is_(None) if cond.value is None else col == cond.value)
        elif cond.op == "neq":
            conditions.append(col.is_not(None) if cond.value is None else col != cond.value)
        elif cond.op == "gte":
            conditions.append(col >= cond.value)
        elif cond.op == "lte":
            conditions.append(col <= cond.value)
        elif cond.op == "in":
            conditions.append(col.in_(list(cond.value)))

    if descriptor.search and descriptor.search.strip():
        needle = descriptor.search.strip()
        like_conds = [
            cast(_require_column(model, name), String).ilike(f"%{needle}%")
            for name in descriptor.search_columns
        ]
        if like_conds:
            conditions.append(or_(*like_conds))

    if conditions:
        query = query.where(and_(*conditions))
    return query


# ── Sorting / limit ─────────────────────────────────────────────────

def apply_ordering(query: Select, model: Any, descriptor: Query) -> Select:
    """Apply ORDER BY (Postgres NULL placement) and LIMIT."""
    for order in descriptor.order:
        col = _require_column(model, order.column)
        query = query.order_by(
            col.asc().nulls_last() if order.ascending else col.desc().nulls_first()
        )
    if descriptor.limit is not None:
        query = query.limit(descriptor.limit)
    return query


# ── Internal helper ─────────────────────────────────────────────────

def _get_column(model: Any, name: str) -> Optional[InstrumentedAttribute]:
    """Safely retrieve a mapped column attribute by name."""
    return getattr(model, name, None)


def _require_column(model: Any, name: str) -> InstrumentedAttribute:
    col = _get_column(model, name)
    if col is None:
        raise RemoteError(
            f"column {model.__tablename__}.{name} does not exist", code="42703",
        )
    return col
