"""Optimistic mutator — apply locally, write remotely, roll back exactly on failure.

Every mutation follows the same sequence:

  1. capture the pre-image of each affected key
  2. patch the cache (no ``await`` between 1 and 2)
  3. issue one remote write carrying the same field values
  4. success → nothing left to do
  5. failure → revert this mutation's own fields, notify, raise ``MutationFailed``

Mutations are tracked individually. A rollback only touches fields whose
last writer is the failing mutation; if a newer pending mutation already
overwrote a field, that mutation inherits the pre-image instead, so a sibling's
change is never clobbered and a later failure of the sibling still restores
the remote truth. A failed create whose row a newer mutation still writes to
hands that mutation the whole creation, so the row leaves the cache once the
last writer fails.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Hashable, Iterable, Mapping, Optional, TypeVar

from pydantic import BaseModel

from workdesk.common.exceptions import MutationFailed, NotFoundException
from workdesk.notifications.service import Notifier
from workdesk.sync.cache import ViewModelCache
from workdesk.sync.entity import EntitySpec, dump_values
from workdesk.sync.remote import RemoteCollection, RemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

# Marks a field whose row did not exist before the mutation.
ABSENT: Any = object()


@dataclass
class _Change:
    """What one mutation did to one key."""

    key: Hashable
    stamp: int
    before: dict[str, Any]
    before_stamps: dict[str, Optional[int]]
    # Stamps of failed earlier mutations whose row this change took over.
    absorbed: set[int] = field(default_factory=set)

    @property
    def owned(self) -> set[int]:
        return {self.stamp} | self.absorbed


@dataclass
class PendingMutation:
    id: int
    kind: str
    changes: dict[Hashable, _Change] = field(default_factory=dict)


class OptimisticMutator(Generic[T]):
    """Optimistic create / update / delete / toggle for one entity type."""

    def __init__(
        self,
        spec: EntitySpec[T],
        cache: ViewModelCache[T],
        remote: RemoteCollection,
        notifier: Notifier,
    ) -> None:
        self.spec = spec
        self.cache = cache
        self.remote = remote
        self.notifier = notifier
        self._ids = itertools.count(1)
        self._pending: dict[int, PendingMutation] = {}

    @property
    def pending(self) -> list[PendingMutation]:
        return list(self._pending.values())

    # ── Public operations ───────────────────────────────────────────

    async def create(self, record: T, *, title: str = "Creation failed") -> T:
        key = self.spec.key(record)
        if key in self.cache:
            raise ValueError(f"{self.spec.name} {key!r} is already in the window")

        mutation = self._begin("create")
        self._apply(mutation, key, record)

        await self._write(
            mutation,
            title,
            self.remote.insert(self.spec.table, [self.spec.to_row(record)]),
        )
        return record

    async def update(
        self,
        key: Hashable,
        fields: Mapping[str, Any],
        *,
        title: str = "Update failed",
    ) -> T:
        if key not in self.cache:
            raise NotFoundException(self.spec.name, key)

        mutation = self._begin("update")
        self._apply(mutation, key, fields)
        entity = self.cache.get(key)
        values = {f: getattr(entity, f) for f in fields}

        await self._write(
            mutation,
            title,
            self.remote.update(self.spec.table, key, dump_values(values)),
        )
        return entity

    async def delete(self, key: Hashable, *, title: str = "Delete failed") -> T:
        previous = self.cache.get(key)
        if previous is None:
            raise NotFoundException(self.spec.name, key)

        mutation = self._begin("delete")
        position = self.cache.position(key)
        stamps = self.cache.stamps(key)
        self.cache.remove(key)

        try:
            await self.remote.delete(self.spec.table, key)
        except RemoteError as exc:
            if key not in self.cache:
                self.cache.put_back(key, previous, stamps, position)
            self._fail(mutation, title, exc)
        finally:
            self._pending.pop(mutation.id, None)
        return previous

    async def toggle(
        self,
        key: Hashable,
        field_name: str,
        default: Callable[[Hashable], T],
    ) -> T:
        """Flip a boolean field and upsert the full new row by its natural key.

        *default* builds the record for a key that has no row yet.
        """
        current = self.cache.get(key)
        target = not getattr(current, field_name) if current is not None else True
        record = self._with_value(current, key, field_name, target, default)

        mutation = self._begin("toggle")
        self._apply(mutation, key, record if current is None else {field_name: target})

        await self._write(
            mutation,
            "Update failed",
            self.remote.upsert(
                self.spec.table, [self.spec.to_row(record)], self.spec.conflict_key,
            ),
        )
        return record

    async def toggle_group(
        self,
        keys: Iterable[Hashable],
        field_name: str,
        default: Callable[[Hashable], T],
    ) -> bool:
        """Set every key's field to ``not all(field)`` with one batched upsert.

        The whole group rolls back together if the batch is rejected.
        """
        keys = list(keys)
        if not keys:
            return False

        current = {k: self.cache.get(k) for k in keys}
        target = not all(
            e is not None and getattr(e, field_name) for e in current.values()
        )
        records = [
            self._with_value(current[k], k, field_name, target, default) for k in keys
        ]

        mutation = self._begin("toggle_group")
        for k, record in zip(keys, records):
            self._apply(mutation, k, record if current[k] is None else {field_name: target})

        await self._write(
            mutation,
            "Column update failed",
            self.remote.upsert(
                self.spec.table,
                [self.spec.to_row(r) for r in records],
                self.spec.conflict_key,
            ),
        )
        return target

    # ── Internals ───────────────────────────────────────────────────

    def _begin(self, kind: str) -> PendingMutation:
        mutation = PendingMutation(id=next(self._ids), kind=kind)
        self._pending[mutation.id] = mutation
        return mutation

    def _apply(
        self,
        mutation: PendingMutation,
        key: Hashable,
        partial: Any,
    ) -> None:
        current = self.cache.get(key)
        fields = (
            list(self.spec.model.model_fields)
            if isinstance(partial, BaseModel)
            else list(partial)
        )
        if current is None:
            before = dict.fromkeys(fields, ABSENT)
        else:
            before = {f: getattr(current, f) for f in fields}
        before_stamps = {f: self.cache.stamp(key, f) for f in fields}

        try:
            stamp = self.cache.patch(key, partial)
        except ValueError:
            self._pending.pop(mutation.id, None)
            raise
        mutation.changes[key] = _Change(key, stamp, before, before_stamps)

    async def _write(self, mutation: PendingMutation, title: str, call) -> None:
        try:
            await call
        except RemoteError as exc:
            self._rollback(mutation)
            self._fail(mutation, title, exc)
        finally:
            self._pending.pop(mutation.id, None)

    def _fail(self, mutation: PendingMutation, title: str, exc: RemoteError) -> None:
        logger.warning(
            "%s %s #%d failed: %s", self.spec.name, mutation.kind, mutation.id, exc.message,
        )
        self.notifier.push(title, exc.message, variant="destructive")
        raise MutationFailed(title, exc.message) from exc

    def _rollback(self, mutation: PendingMutation) -> None:
        for change in mutation.changes.values():
            self._revert(mutation, change)

    def _revert(self, mutation: PendingMutation, change: _Change) -> None:
        key = change.key
        owned = change.owned
        values: dict[str, Any] = {}
        stamps: dict[str, Optional[int]] = {}

        for f, before in change.before.items():
            if self.cache.stamp(key, f) in owned:
                values[f] = before
                stamps[f] = change.before_stamps[f]
                continue
            heir = self._heir(mutation, key, f, owned)
            if heir is not None:
                heir.before[f] = before
                heir.before_stamps[f] = change.before_stamps[f]

        if not values:
            return
        if any(v is ABSENT for v in values.values()):
            self._uncreate(mutation, change)
            return
        self.cache.restore(key, values, stamps)

    def _uncreate(self, mutation: PendingMutation, change: _Change) -> None:
        """Drop a row this mutation created, or pass its creation to a newer writer."""
        key = change.key
        current = set(self.cache.stamps(key).values())
        claims = [
            other
            for other in (
                m.changes.get(key) for m in self._pending.values() if m is not mutation
            )
            if other is not None and other.owned & current
        ]
        claimed = set().union(*(c.owned for c in claims))
        if current - change.owned - claimed:
            # Written by the change feed or a settled mutation; the row exists remotely.
            return
        if not claims:
            self.cache.remove(key)
            return

        heir = max(claims, key=lambda c: c.stamp)
        for f in change.before:
            heir.before[f] = ABSENT
            heir.before_stamps[f] = change.before_stamps[f]
        heir.absorbed |= change.owned

    def _heir(
        self,
        mutation: PendingMutation,
        key: Hashable,
        field_name: str,
        owned: set[int],
    ) -> Optional[_Change]:
        for other in self._pending.values():
            if other.id <= mutation.id:
                continue
            change = other.changes.get(key)
            if change is not None and change.before_stamps.get(field_name) in owned:
                return change
        return None

    def _with_value(
        self,
        current: Optional[T],
        key: Hashable,
        field_name: str,
        value: Any,
        default: Callable[[Hashable], T],
    ) -> T:
        base = current if current is not None else default(key)
        return base.model_copy(update={field_name: value})
