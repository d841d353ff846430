"""Remote collection contract — filter descriptors, change events, the client protocol.

The row store itself (SQL or hosted REST) lives in ``workdesk.store``; this
module only defines what the synchronization layer consumes.
"""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime, timezone
from typing import Any, Literal, Mapping, Optional, Protocol, Sequence

from pydantic import BaseModel, ConfigDict, Field

from workdesk.common.constants import DEFAULT_SCHEMA, ChangeKind

Operator = Literal["eq", "neq", "gte", "lte", "in"]


class RemoteError(Exception):
    """Structured error returned by the row store, with a human-readable message."""

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ── Filter descriptor ───────────────────────────────────────────────

class Condition(BaseModel):
    model_config = ConfigDict(frozen=True)

    column: str
    op: Operator
    value: Any


class Order(BaseModel):
    model_config = ConfigDict(frozen=True)

    column: str
    ascending: bool = True


class Query(BaseModel):
    """Immutable filter descriptor passed to ``select`` / ``count``.

    Builder methods return a new descriptor, so a window captured by a
    pending load can never be changed underneath it::

        Query().gte("date", start).lte("date", end).order_by("name")
    """

    model_config = ConfigDict(frozen=True)

    conditions: tuple[Condition, ...] = ()
    search: Optional[str] = None
    search_columns: tuple[str, ...] = ()
    order: tuple[Order, ...] = ()
    limit: Optional[int] = Field(default=None, ge=1)

    # ── builders ────────────────────────────────────────────────────

    def where(self, column: str, op: Operator, value: Any) -> Query:
        condition = Condition(column=column, op=op, value=value)
        return self.model_copy(update={"conditions": self.conditions + (condition,)})

    def eq(self, column: str, value: Any) -> Query:
        return self.where(column, "eq", value)

    def neq(self, column: str, value: Any) -> Query:
        return self.where(column, "neq", value)

    def gte(self, column: str, value: Any) -> Query:
        return self.where(column, "gte", value)

    def lte(self, column: str, value: Any) -> Query:
        return self.where(column, "lte", value)

    def in_(self, column: str, values: Sequence[Any]) -> Query:
        return self.where(column, "in", tuple(values))

    def ilike(self, text: str, *columns: str) -> Query:
        """Case-insensitive substring match on any of *columns*."""
        return self.model_copy(update={"search": text, "search_columns": tuple(columns)})

    def order_by(self, column: str, ascending: bool = True) -> Query:
        order = Order(column=column, ascending=ascending)
        return self.model_copy(update={"order": self.order + (order,)})

    def take(self, limit: int) -> Query:
        return self.model_copy(update={"limit": limit})

    # ── local evaluation ────────────────────────────────────────────

    def matches(self, row: Mapping[str, Any]) -> bool:
        """Evaluate the predicate part (not order/limit) against a raw row."""
        for cond in self.conditions:
            actual = normalize(row.get(cond.column))
            if cond.op == "in":
                if actual not in {normalize(v) for v in cond.value}:
                    return False
                continue
            expected = normalize(cond.value)
            if cond.op == "eq" and actual != expected:
                return False
            if cond.op == "neq" and actual == expected:
                return False
            if cond.op in ("gte", "lte"):
                if actual is None:
                    return False
                if cond.op == "gte" and actual < expected:
                    return False
                if cond.op == "lte" and actual > expected:
                    return False
        if self.search:
            needle = self.search.lower()
            haystacks = (str(row.get(c) or "").lower() for c in self.search_columns)
            if not any(needle in h for h in haystacks):
                return False
        return True


def normalize(value: Any) -> Any:
    """Bring SQL-typed and JSON-typed row values onto one comparable form."""
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


# ── Change events ───────────────────────────────────────────────────

class ChangeEvent(BaseModel):
    """One row change delivered by the change feed."""

    schema_name: str = DEFAULT_SCHEMA
    table: str
    kind: ChangeKind
    new: dict[str, Any] = Field(default_factory=dict)
    old: Optional[dict[str, Any]] = None
    commit_timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ── Client protocol ─────────────────────────────────────────────────

class RemoteCollection(Protocol):
    """Row-store operations consumed by the synchronization layer.

    Every method raises :class:`RemoteError` on transport or query failure.
    """

    async def select(self, table: str, query: Query = Query()) -> list[dict[str, Any]]: ...

    async def count(self, table: str, query: Query = Query()) -> int: ...

    async def insert(self, table: str, records: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]: ...

    async def update(self, table: str, id: Any, fields: Mapping[str, Any]) -> dict[str, Any]: ...

    async def upsert(
        self,
        table: str,
        records: Sequence[Mapping[str, Any]],
        on_conflict: Sequence[str],
    ) -> list[dict[str, Any]]: ...

    async def delete(self, table: str, id: Any) -> None: ...
