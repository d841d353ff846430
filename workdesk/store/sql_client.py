"""SQL row store — the remote collection contract over async SQLAlchemy.

Each call runs in its own transaction. Committed writes are published to the
change feed, which is what keeps other views of the same table live.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Any, Mapping, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from workdesk.common.constants import ChangeKind
from workdesk.store.filters import apply_filters, apply_ordering
from workdesk.store.models import TABLES
from workdesk.sync.feed import ChangeFeed
from workdesk.sync.remote import ChangeEvent, Query, RemoteError

logger = logging.getLogger(__name__)


def _as_row(obj: Any) -> dict[str, Any]:
    """ORM instance → plain column dict."""
    return {attr.key: getattr(obj, attr.key) for attr in sa.inspect(type(obj)).column_attrs}


def _remote_error(exc: SQLAlchemyError) -> RemoteError:
    orig = getattr(exc, "orig", None)
    message = str(orig) if orig is not None else str(exc)
    return RemoteError(message, code=type(orig or exc).__name__)


class SqlCollectionClient:
    """``RemoteCollection`` backed by an ``async_sessionmaker``."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        feed: Optional[ChangeFeed] = None,
    ) -> None:
        self._session_factory = session_factory
        self._feed = feed

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    def _model(table: str) -> Any:
        try:
            return TABLES[table]
        except KeyError:
            raise RemoteError(f'relation "public.{table}" does not exist', code="42P01") from None

    @staticmethod
    def _coerce(model: Any, values: Mapping[str, Any]) -> dict[str, Any]:
        """Validate column names and parse ISO strings for typed columns."""
        columns = model.__table__.columns
        coerced: dict[str, Any] = {}
        for key, value in values.items():
            if key not in columns:
                raise RemoteError(
                    f"Could not find the '{key}' column of '{model.__tablename__}'",
                    code="PGRST204",
                )
            python_type = columns[key].type.python_type
            if isinstance(value, str):
                try:
                    if python_type is uuid.UUID:
                        value = uuid.UUID(value)
                    elif python_type is datetime:
                        value = datetime.fromisoformat(value)
                    elif python_type is date:
                        value = date.fromisoformat(value)
                except ValueError as exc:
                    raise RemoteError(
                        f'invalid input syntax for {python_type.__name__}: "{value}"',
                        code="22P02",
                    ) from exc
            coerced[key] = value
        return coerced

    def _publish(self, table: str, kind: ChangeKind, new: dict, old: Optional[dict] = None) -> None:
        if self._feed is None:
            return
        self._feed.publish(ChangeEvent(table=table, kind=kind, new=new, old=old))

    # ── Reads ───────────────────────────────────────────────────────

    async def select(self, table: str, query: Query = Query()) -> list[dict[str, Any]]:
        model = self._model(table)
        stmt = apply_ordering(apply_filters(select(model), model, query), model, query)
        try:
            async with self._session_factory() as session:
                objs = (await session.execute(stmt)).scalars().all()
                return [_as_row(o) for o in objs]
        except SQLAlchemyError as exc:
            raise _remote_error(exc) from exc

    async def count(self, table: str, query: Query = Query()) -> int:
        model = self._model(table)
        stmt = apply_filters(select(func.count()).select_from(model), model, query)
        try:
            async with self._session_factory() as session:
                return (await session.execute(stmt)).scalar_one()
        except SQLAlchemyError as exc:
            raise _remote_error(exc) from exc

    # ── Writes ──────────────────────────────────────────────────────

    async def insert(self, table: str, records: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        model = self._model(table)
        objs = [model(**self._coerce(model, r)) for r in records]
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add_all(objs)
                    await session.flush()
                    rows = [_as_row(o) for o in objs]
        except SQLAlchemyError as exc:
            raise _remote_error(exc) from exc

        for row in rows:
            self._publish(table, ChangeKind.insert, row)
        logger.debug("Inserted %d row(s) into %s", len(rows), table)
        return rows

    async def update(self, table: str, id: Any, fields: Mapping[str, Any]) -> dict[str, Any]:
        model = self._model(table)
        values = self._coerce(model, fields)
        pk = self._coerce(model, {"id": id})["id"]
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    obj = await session.get(model, pk)
                    if obj is None:
                        raise RemoteError(
                            f"No {table} row matches id {id}", code="PGRST116",
                        )
                    old = _as_row(obj)
                    for key, value in values.items():
                        setattr(obj, key, value)
                    await session.flush()
                    new = _as_row(obj)
        except SQLAlchemyError as exc:
            raise _remote_error(exc) from exc

        self._publish(table, ChangeKind.update, new, old)
        return new

    async def upsert(
        self,
        table: str,
        records: Sequence[Mapping[str, Any]],
        on_conflict: Sequence[str],
    ) -> list[dict[str, Any]]:
        """``INSERT … ON CONFLICT (on_conflict) DO UPDATE`` for the whole batch at once."""
        if not records:
            return []
        model = self._model(table)
        conflict = list(on_conflict)
        rows = [self._coerce(model, r) for r in records]
        if "id" in model.__table__.columns and "id" not in conflict:
            for row in rows:
                row.setdefault("id", uuid.uuid4())

        def _match(batch: list[dict[str, Any]]):
            return or_(*[
                and_(*[getattr(model, c) == row[c] for c in conflict]) for row in batch
            ])

        def _key(row: Mapping[str, Any]) -> tuple:
            return tuple(row[c] for c in conflict)

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    insert = self._dialect_insert(session)
                    stmt = insert(model).values(rows)
                    update_cols = {
                        k: stmt.excluded[k] for k in rows[0] if k not in conflict and k != "id"
                    }
                    if update_cols:
                        stmt = stmt.on_conflict_do_update(index_elements=conflict, set_=update_cols)
                    else:
                        stmt = stmt.on_conflict_do_nothing(index_elements=conflict)

                    existing = (await session.execute(select(model).where(_match(rows)))).scalars().all()
                    before = {_key(_as_row(o)): _as_row(o) for o in existing}

                    await session.execute(stmt)

                    written = (
                        await session.execute(
                            select(model)
                            .where(_match(rows))
                            .execution_options(populate_existing=True)
                        )
                    ).scalars().all()
                    after = [_as_row(o) for o in written]
        except SQLAlchemyError as exc:
            raise _remote_error(exc) from exc

        for row in after:
            old = before.get(_key(row))
            kind = ChangeKind.update if old is not None else ChangeKind.insert
            self._publish(table, kind, row, old)
        logger.debug("Upserted %d row(s) into %s on %s", len(after), table, conflict)
        return after

    @staticmethod
    def _dialect_insert(session: AsyncSession):
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise RemoteError(f"upsert is not supported on {dialect}")
        return insert

    async def delete(self, table: str, id: Any) -> None:
        model = self._model(table)
        pk = self._coerce(model, {"id": id})["id"]
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    obj = await session.get(model, pk)
                    if obj is None:
                        return
                    old = _as_row(obj)
                    await session.delete(obj)
        except SQLAlchemyError as exc:
            raise _remote_error(exc) from exc

        self._publish(table, ChangeKind.delete, {}, old)
