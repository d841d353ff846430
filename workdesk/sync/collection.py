"""Synced collection — one entity type's cache, mutator and change-feed listener."""

from __future__ import annotations

import logging
from typing import Any, Callable, Generic, Hashable, Iterable, Mapping, Optional, TypeVar

from pydantic import BaseModel

from workdesk.common.constants import ChangeKind
from workdesk.common.exceptions import FetchError
from workdesk.notifications.service import Notifier
from workdesk.sync.cache import ViewModelCache
from workdesk.sync.entity import EntitySpec
from workdesk.sync.feed import ALL_KINDS, ChangeFeed, ChangeFeedListener, Subscription
from workdesk.sync.mutator import OptimisticMutator
from workdesk.sync.remote import Query, RemoteCollection

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class SyncedCollection(Generic[T]):
    """Facade the page services work against."""

    def __init__(
        self,
        spec: EntitySpec[T],
        remote: RemoteCollection,
        feed: ChangeFeed,
        notifier: Notifier,
        *,
        load_timeout: Optional[float] = None,
    ) -> None:
        self.spec = spec
        self.remote = remote
        self.feed = feed
        self.notifier = notifier
        self.cache: ViewModelCache[T] = ViewModelCache(
            spec, self._fetch, load_timeout=load_timeout,
        )
        self.mutator: OptimisticMutator[T] = OptimisticMutator(
            spec, self.cache, remote, notifier,
        )
        self.listener: ChangeFeedListener[T] = ChangeFeedListener(spec, self.cache)

    async def _fetch(self, window: Query) -> list[T]:
        rows = await self.remote.select(self.spec.table, window)
        entities = (self.spec.from_row(row) for row in rows)
        return [e for e in entities if e is not None]

    # ── Reads ───────────────────────────────────────────────────────

    async def load(self, window: Query) -> Optional[list[T]]:
        """Load *window*; on failure notify, keep the old snapshot and re-raise."""
        try:
            return await self.cache.load(window)
        except FetchError as exc:
            self.notifier.push(exc.title, exc.message, variant="destructive")
            raise

    async def ensure(self, window: Query, *, refresh: bool = False) -> list[T]:
        """Serve the cached snapshot when it already holds *window*."""
        if refresh or self.cache.window != window:
            snapshot = await self.load(window)
            if snapshot is None:
                # A newer load superseded this one; show whatever is current.
                return self.cache.all()
            return snapshot
        return self.cache.all()

    @property
    def window(self) -> Optional[Query]:
        return self.cache.window

    def get(self, key: Hashable) -> Optional[T]:
        return self.cache.get(key)

    def all(self) -> list[T]:
        return self.cache.all()

    # ── Writes ──────────────────────────────────────────────────────

    async def create(self, record: T, *, title: str = "Creation failed") -> T:
        return await self.mutator.create(record, title=title)

    async def update(
        self,
        key: Hashable,
        fields: Mapping[str, Any],
        *,
        title: str = "Update failed",
    ) -> T:
        return await self.mutator.update(key, fields, title=title)

    async def delete(self, key: Hashable, *, title: str = "Delete failed") -> T:
        return await self.mutator.delete(key, title=title)

    async def toggle(self, key: Hashable, field: str, default: Callable[[Hashable], T]) -> T:
        return await self.mutator.toggle(key, field, default)

    async def toggle_group(
        self,
        keys: Iterable[Hashable],
        field: str,
        default: Callable[[Hashable], T],
    ) -> bool:
        return await self.mutator.toggle_group(keys, field, default)

    # ── Live updates ────────────────────────────────────────────────

    def listen(self, kinds: Iterable[ChangeKind] = ALL_KINDS) -> Subscription:
        """Open a change-feed subscription that keeps this cache live."""
        return self.listener.attach(self.feed, kinds)
