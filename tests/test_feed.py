"""Change feed — subscription lifetime, delivery filtering, listener folding rules."""

from __future__ import annotations

import asyncio
import uuid

from workdesk.common.constants import ChangeKind
from workdesk.sync.cache import ViewModelCache
from workdesk.sync.feed import ChangeFeed, ChangeFeedListener
from workdesk.sync.remote import ChangeEvent, Query
from workdesk.tasks.schemas import TASKS, Task
from tests.conftest import _make_task


def _event(kind: ChangeKind, new: dict | None = None, old: dict | None = None, table: str = "tasks"):
    return ChangeEvent(table=table, kind=kind, new=new or {}, old=old)


async def _listening_cache(rows: list[dict], window: Query = Query()):
    async def fetch(w):
        return [Task.model_validate(r) for r in rows]

    cache = ViewModelCache(TASKS, fetch)
    await cache.load(window)
    return cache, ChangeFeedListener(TASKS, cache)


# ═════════════════════════════════════════════════════════════════════
# Subscriptions
# ═════════════════════════════════════════════════════════════════════


def test_subscription_released_on_context_exit():
    feed = ChangeFeed()
    received = []

    with feed.subscribe("tasks", received.append) as subscription:
        assert feed.active_subscriptions == 1
        feed.publish(_event(ChangeKind.insert, {"id": "1"}))

    assert subscription.closed
    assert feed.active_subscriptions == 0
    assert feed.publish(_event(ChangeKind.insert, {"id": "2"})) == 0
    assert len(received) == 1


def test_close_is_idempotent():
    feed = ChangeFeed()
    subscription = feed.subscribe("tasks", lambda e: None)
    subscription.close()
    subscription.close()
    assert feed.active_subscriptions == 0


def test_delivery_filters_on_table_kind_and_schema():
    feed = ChangeFeed()
    inserts, audits = [], []
    feed.subscribe("notices", inserts.append, kinds=(ChangeKind.insert,))
    feed.subscribe("notices", audits.append, schema="audit")

    feed.publish(_event(ChangeKind.insert, {"id": "n1"}, table="notices"))
    feed.publish(_event(ChangeKind.update, {"id": "n1"}, table="notices"))
    feed.publish(_event(ChangeKind.insert, {"id": "t1"}, table="tasks"))

    assert [e.new["id"] for e in inserts] == ["n1"]
    assert audits == []


def test_failing_handler_does_not_block_other_subscribers():
    feed = ChangeFeed()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    feed.subscribe("tasks", broken)
    feed.subscribe("tasks", received.append)

    assert feed.publish(_event(ChangeKind.insert, {"id": "1"})) == 2
    assert len(received) == 1


async def test_async_handlers_are_tracked_until_drained():
    feed = ChangeFeed()
    seen = []

    async def handler(event):
        await asyncio.sleep(0)
        seen.append(event.new["id"])

    feed.subscribe("tasks", handler)
    feed.publish(_event(ChangeKind.insert, {"id": "1"}))
    await feed.drain()

    assert seen == ["1"]


async def test_close_all_releases_everything():
    feed = ChangeFeed()
    subs = [feed.subscribe("tasks", lambda e: None) for _ in range(3)]
    feed.close_all()
    assert feed.active_subscriptions == 0
    assert all(s.closed for s in subs)


# ═════════════════════════════════════════════════════════════════════
# Listener
# ═════════════════════════════════════════════════════════════════════


async def test_insert_inside_window_is_added():
    cache, listener = await _listening_cache([])
    row = _make_task(title="Fresh")

    listener.handle(_event(ChangeKind.insert, row))

    assert cache.get(row["id"]).title == "Fresh"


async def test_remote_update_overwrites_optimistic_value():
    row = _make_task(title="Server")
    cache, listener = await _listening_cache([row])
    cache.patch(row["id"], {"title": "Optimistic"})

    listener.handle(_event(ChangeKind.update, {**row, "title": "Server v2"}))

    assert cache.get(row["id"]).title == "Server v2"


async def test_row_leaving_the_window_is_removed():
    row = _make_task(status="pending")
    cache, listener = await _listening_cache([row], Query().eq("status", "pending"))

    listener.handle(_event(ChangeKind.update, {**row, "status": "completed"}))

    assert row["id"] not in cache


async def test_delete_uses_old_row_key():
    row = _make_task()
    cache, listener = await _listening_cache([row])

    listener.handle(_event(ChangeKind.delete, {}, old={"id": str(row["id"])}))

    assert row["id"] not in cache


async def test_malformed_rows_are_dropped():
    cache, listener = await _listening_cache([])

    listener.handle(_event(ChangeKind.insert, {"id": str(uuid.uuid4()), "title": ""}))
    listener.handle(_event(ChangeKind.delete, {}, old={"title": "no key"}))

    assert len(cache) == 0


async def test_events_before_first_load_are_ignored():
    async def fetch(window):
        return []

    cache = ViewModelCache(TASKS, fetch)
    listener = ChangeFeedListener(TASKS, cache)

    listener.handle(_event(ChangeKind.insert, _make_task()))

    assert len(cache) == 0
    assert cache.window is None


async def test_attached_listener_follows_feed_until_closed():
    feed = ChangeFeed()
    cache, listener = await _listening_cache([])
    first, second = _make_task(title="a"), _make_task(title="b")

    with listener.attach(feed):
        feed.publish(_event(ChangeKind.insert, first))
    feed.publish(_event(ChangeKind.insert, second))

    assert first["id"] in cache
    assert second["id"] not in cache
