"""Change feed — push channel per table, and the listener that folds events into a cache.

Subscriptions are explicit resources: ``subscribe`` returns a handle that
must be closed when the consuming view goes away, preferably through
``with`` / ``async with`` so release is guaranteed::

    with feed.subscribe("notices", on_notice, kinds=(ChangeKind.insert,)):
        ...
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

from pydantic import BaseModel

from workdesk.common.constants import DEFAULT_SCHEMA, ChangeKind
from workdesk.sync.cache import ViewModelCache
from workdesk.sync.entity import EntitySpec
from workdesk.sync.remote import ChangeEvent

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

Handler = Callable[[ChangeEvent], Any]

ALL_KINDS: tuple[ChangeKind, ...] = (ChangeKind.insert, ChangeKind.update, ChangeKind.delete)


class Subscription:
    """Disposable handle for one (schema, table, kinds) channel."""

    def __init__(
        self,
        feed: ChangeFeed,
        id: int,
        table: str,
        handler: Handler,
        kinds: tuple[ChangeKind, ...],
        schema: str,
    ) -> None:
        self._feed = feed
        self.id = id
        self.table = table
        self.handler = handler
        self.kinds = kinds
        self.schema = schema
        self.closed = False

    def accepts(self, event: ChangeEvent) -> bool:
        return (
            not self.closed
            and event.table == self.table
            and event.schema_name == self.schema
            and event.kind in self.kinds
        )

    def close(self) -> None:
        if self.closed:
            logger.debug("Subscription #%d on %s already closed", self.id, self.table)
            return
        self.closed = True
        self._feed._release(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<Subscription #{self.id} {self.schema}.{self.table} {state}>"


class ChangeFeed:
    """In-process broker for row-change events.

    The row-store client publishes every committed write here; subscribers
    receive them synchronously on the event loop. Coroutine handlers are
    scheduled as tasks and tracked until they finish.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._tasks: set[asyncio.Task] = set()

    @property
    def active_subscriptions(self) -> int:
        return len(self._subscriptions)

    def subscribe(
        self,
        table: str,
        handler: Handler,
        *,
        kinds: Iterable[ChangeKind] = ALL_KINDS,
        schema: str = DEFAULT_SCHEMA,
    ) -> Subscription:
        subscription = Subscription(
            self, next(self._ids), table, handler, tuple(kinds), schema,
        )
        self._subscriptions[subscription.id] = subscription
        logger.debug("Opened %r", subscription)
        return subscription

    def _release(self, subscription: Subscription) -> None:
        self._subscriptions.pop(subscription.id, None)
        logger.debug("Released %r", subscription)

    def publish(self, event: ChangeEvent) -> int:
        """Deliver *event* to every matching subscriber; return how many got it."""
        delivered = 0
        for subscription in list(self._subscriptions.values()):
            if not subscription.accepts(event):
                continue
            delivered += 1
            try:
                result = subscription.handler(event)
            except Exception:
                logger.exception(
                    "Change handler for %s.%s failed", event.schema_name, event.table,
                )
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)
        return delivered

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Async change handler failed", exc_info=task.exception())

    async def drain(self) -> None:
        """Wait for scheduled async handlers to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close_all(self) -> None:
        for subscription in list(self._subscriptions.values()):
            subscription.close()
        for task in list(self._tasks):
            task.cancel()


class ChangeFeedListener(Generic[T]):
    """Fold change events for one entity type into its view model cache.

    Remote truth wins: an observed row overwrites any optimistic local value
    for the same key. Rows that no longer match the active window leave it.
    """

    def __init__(self, spec: EntitySpec[T], cache: ViewModelCache[T]) -> None:
        self.spec = spec
        self.cache = cache

    def handle(self, event: ChangeEvent) -> None:
        if self.cache.window is None:
            return

        if event.kind == ChangeKind.delete:
            row = event.old or event.new
            try:
                key = self.spec.row_key(row)
            except (KeyError, ValueError):
                logger.warning("Dropping %s delete without a usable key: %r", self.spec.name, row)
                return
            self.cache.remove(key)
            return

        entity = self.spec.from_row(event.new)
        if entity is None:
            return
        key = self.spec.key(entity)

        if not self.cache.window.matches(event.new):
            if key in self.cache:
                self.cache.remove(key)
            return
        self.cache.patch(key, entity)

    def attach(
        self,
        feed: ChangeFeed,
        kinds: Iterable[ChangeKind] = ALL_KINDS,
        schema: Optional[str] = None,
    ) -> Subscription:
        return feed.subscribe(
            self.spec.table, self.handle, kinds=kinds, schema=schema or DEFAULT_SCHEMA,
        )
