"""View model cache — the client-held window onto one entity type.

The cache is rebuilt wholesale by ``load`` and patched incrementally by the
optimistic mutator and the change-feed listener. Every write is stamped from
a monotonic clock, per field, so a failed mutation can tell whether the
value it applied is still the one on display.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Awaitable, Callable, Generic, Hashable, Iterator, Mapping, Optional, TypeVar, Union

from pydantic import BaseModel, ValidationError

from workdesk.common.exceptions import FetchError
from workdesk.sync.entity import EntitySpec
from workdesk.sync.remote import Query, RemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

Fetcher = Callable[[Query], Awaitable[list[T]]]


def _sort_value(value: Any) -> tuple[bool, Any]:
    # NULLs last ascending / first descending, like Postgres
    if isinstance(value, str):
        value = value.casefold()
    return (value is None, value)


class ViewModelCache(Generic[T]):
    """In-memory ``key → entity`` map for the active filter window."""

    def __init__(
        self,
        spec: EntitySpec[T],
        fetch: Fetcher,
        *,
        load_timeout: Optional[float] = None,
    ) -> None:
        self.spec = spec
        self._fetch = fetch
        self._load_timeout = load_timeout
        self._entities: dict[Hashable, T] = {}
        self._stamps: dict[Hashable, dict[str, int]] = {}
        self._clock = itertools.count(1)
        self._generation = 0
        self.window: Optional[Query] = None

    # ── Window loading ──────────────────────────────────────────────

    @property
    def generation(self) -> int:
        return self._generation

    async def load(self, window: Query) -> Optional[list[T]]:
        """Replace the snapshot with the rows of *window*.

        Returns the new snapshot, or ``None`` when a newer ``load`` started
        while this one was in flight (the late result is discarded). On
        failure the previous snapshot is left untouched.
        """
        self._generation += 1
        token = self._generation

        try:
            if self._load_timeout is None:
                entities = await self._fetch(window)
            else:
                entities = await asyncio.wait_for(self._fetch(window), self._load_timeout)
        except asyncio.TimeoutError:
            if token != self._generation:
                return None
            raise FetchError(
                self.spec.name,
                f"Loading {self.spec.name} timed out after {self._load_timeout:g}s.",
            )
        except RemoteError as exc:
            if token != self._generation:
                return None
            raise FetchError(self.spec.name, exc.message) from exc

        if token != self._generation:
            logger.debug(
                "Discarding stale %s load (generation %d, current %d)",
                self.spec.name, token, self._generation,
            )
            return None

        self._replace(entities, window)
        return self.all()

    def _replace(self, entities: list[T], window: Query) -> None:
        self._entities = {}
        self._stamps = {}
        for entity in entities:
            key = self.spec.key(entity)
            stamp = next(self._clock)
            self._entities[key] = entity
            self._stamps[key] = dict.fromkeys(type(entity).model_fields, stamp)
        self.window = window
        logger.debug("Loaded %d %s into window", len(entities), self.spec.name)

    # ── Point access ────────────────────────────────────────────────

    def get(self, key: Hashable) -> Optional[T]:
        return self._entities.get(key)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[T]:
        return iter(self.all())

    def keys(self) -> list[Hashable]:
        return list(self._entities)

    def stamp(self, key: Hashable, field: str) -> Optional[int]:
        return self._stamps.get(key, {}).get(field)

    def stamps(self, key: Hashable) -> dict[str, int]:
        return dict(self._stamps.get(key, {}))

    def position(self, key: Hashable) -> Optional[int]:
        for index, existing in enumerate(self._entities):
            if existing == key:
                return index
        return None

    # ── Writes ──────────────────────────────────────────────────────

    def patch(self, key: Hashable, partial: Union[Mapping[str, Any], T]) -> int:
        """Merge *partial* into the entity at *key* and return the write stamp.

        An absent key is inserted; *partial* must then be a complete record.
        """
        if isinstance(partial, BaseModel):
            fields = partial.model_dump()
        else:
            fields = dict(partial)

        current = self._entities.get(key)
        model = self.spec.model
        unknown = set(fields) - set(model.model_fields)
        if unknown:
            raise ValueError(f"Unknown {self.spec.name} fields: {sorted(unknown)}")

        try:
            if current is None:
                entity = partial if isinstance(partial, model) else model.model_validate(fields)
            else:
                entity = model.model_validate({**current.model_dump(), **fields})
        except ValidationError as exc:
            if current is None:
                raise ValueError(
                    f"A complete {self.spec.name} record is required to insert key {key!r}"
                ) from exc
            raise ValueError(f"Invalid {self.spec.name} patch for key {key!r}: {exc}") from exc

        stamp = next(self._clock)
        self._entities[key] = entity
        if current is None:
            self._stamps[key] = dict.fromkeys(model.model_fields, stamp)
            self._enforce_limit()
        else:
            self._stamps[key].update(dict.fromkeys(fields, stamp))
        return stamp

    def restore(
        self,
        key: Hashable,
        values: Mapping[str, Any],
        stamps: Mapping[str, Optional[int]],
    ) -> None:
        """Put back exact earlier field values and their original stamps."""
        current = self._entities.get(key)
        if current is None:
            return
        self._entities[key] = current.model_copy(update=dict(values))
        own = self._stamps[key]
        for field, stamp in stamps.items():
            if stamp is None:
                own.pop(field, None)
            else:
                own[field] = stamp

    def remove(self, key: Hashable) -> Optional[T]:
        self._stamps.pop(key, None)
        return self._entities.pop(key, None)

    def put_back(
        self,
        key: Hashable,
        entity: T,
        stamps: Mapping[str, int],
        position: Optional[int] = None,
    ) -> None:
        """Re-insert a removed entity, at its old position when given."""
        items = [(k, v) for k, v in self._entities.items() if k != key]
        index = len(items) if position is None else min(position, len(items))
        items.insert(index, (key, entity))
        self._entities = dict(items)
        self._stamps[key] = dict(stamps)

    def clear(self) -> None:
        self._entities = {}
        self._stamps = {}
        self.window = None

    # ── Iteration ───────────────────────────────────────────────────

    def all(self) -> list[T]:
        """Entities in insertion order, or sorted by the window's ordering."""
        items = list(self._entities.values())
        if self.window is None:
            return items
        for order in reversed(self.window.order):
            items.sort(
                key=lambda e, col=order.column: _sort_value(getattr(e, col, None)),
                reverse=not order.ascending,
            )
        return items

    def _enforce_limit(self) -> None:
        if self.window is None or self.window.limit is None:
            return
        overflow = len(self._entities) - self.window.limit
        if overflow <= 0:
            return
        for entity in self.all()[-overflow:]:
            self.remove(self.spec.key(entity))
