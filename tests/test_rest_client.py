"""REST row store — PostgREST encoding, error mapping and feed echo over ``MockTransport``."""

from __future__ import annotations

import json
import uuid
from datetime import date

import httpx
import pytest

from workdesk.common.constants import ChangeKind
from workdesk.store.rest_client import RestCollectionClient
from workdesk.sync.feed import ChangeFeed
from workdesk.sync.remote import Query, RemoteError


class Recorder:
    """Serve canned responses and keep every request for inspection."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed()


def _client(recorder: Recorder, feed=None, token=None) -> RestCollectionClient:
    return RestCollectionClient(
        "http://backend.test/",
        "anon-key",
        access_token=token,
        client=httpx.AsyncClient(transport=httpx.MockTransport(recorder)),
        feed=feed,
    )


# ═════════════════════════════════════════════════════════════════════
# Reads
# ═════════════════════════════════════════════════════════════════════


async def test_select_encodes_filters_search_order_and_limit():
    recorder = Recorder(httpx.Response(200, json=[{"id": "1"}]))
    rest = _client(recorder)

    rows = await rest.select(
        "tasks",
        Query()
        .eq("status", "pending")
        .gte("due_date", date(2024, 3, 1))
        .in_("priority", ["high", "medium"])
        .eq("assignee_id", None)
        .ilike("report", "title", "description")
        .order_by("created_at", ascending=False)
        .take(3),
    )

    assert rows == [{"id": "1"}]
    request = recorder.last
    assert request.method == "GET"
    assert request.url.path == "/rest/v1/tasks"
    params = request.url.params
    assert params["select"] == "*"
    assert params["status"] == "eq.pending"
    assert params["due_date"] == "gte.2024-03-01"
    assert params["priority"] == 'in.("high","medium")'
    assert params["assignee_id"] == "is.null"
    assert params["or"] == "(title.ilike.*report*,description.ilike.*report*)"
    assert params["order"] == "created_at.desc.nullsfirst"
    assert params["limit"] == "3"


async def test_requests_carry_api_key_and_user_token():
    recorder = Recorder(httpx.Response(200, json=[]), httpx.Response(200, json=[]))

    await _client(recorder).select("notices")
    assert recorder.last.headers["Authorization"] == "Bearer anon-key"

    await _client(recorder, token="user-jwt").select("notices")
    assert recorder.last.headers["apikey"] == "anon-key"
    assert recorder.last.headers["Authorization"] == "Bearer user-jwt"


async def test_count_reads_content_range_and_drops_order():
    recorder = Recorder(httpx.Response(200, headers={"Content-Range": "0-24/42"}))
    rest = _client(recorder)

    total = await rest.count("leaves", Query().eq("status", "Pending").order_by("created_at").take(5))

    assert total == 42
    request = recorder.last
    assert request.method == "HEAD"
    assert request.headers["Prefer"] == "count=exact"
    assert "order" not in request.url.params
    assert "limit" not in request.url.params


async def test_count_without_total_is_an_error():
    recorder = Recorder(httpx.Response(200, headers={"Content-Range": "*/*"}))
    with pytest.raises(RemoteError, match="Content-Range"):
        await _client(recorder).count("leaves")


# ═════════════════════════════════════════════════════════════════════
# Writes
# ═════════════════════════════════════════════════════════════════════


async def test_insert_serializes_and_publishes_returned_rows(feed):
    received = []
    feed.subscribe("leaves", received.append)
    profile_id = uuid.uuid4()
    returned = {"id": "l1", "profile_id": str(profile_id), "start_date": "2024-05-06"}
    recorder = Recorder(httpx.Response(201, json=[returned]))

    rows = await _client(recorder, feed).insert(
        "leaves", [{"profile_id": profile_id, "start_date": date(2024, 5, 6)}],
    )

    assert rows == [returned]
    assert recorder.last.headers["Prefer"] == "return=representation"
    assert json.loads(recorder.last.content) == [
        {"profile_id": str(profile_id), "start_date": "2024-05-06"},
    ]
    assert [(e.kind, e.new["id"]) for e in received] == [(ChangeKind.insert, "l1")]


async def test_update_targets_the_id_and_reports_missing_rows(feed):
    row_id = uuid.uuid4()
    recorder = Recorder(
        httpx.Response(200, json=[{"id": str(row_id), "status": "Approved"}]),
        httpx.Response(200, json=[]),
    )
    rest = _client(recorder, feed)

    row = await rest.update("leaves", row_id, {"status": "Approved"})
    assert row["status"] == "Approved"
    assert recorder.last.method == "PATCH"
    assert recorder.last.url.params["id"] == f"eq.{row_id}"

    with pytest.raises(RemoteError) as exc_info:
        await rest.update("leaves", row_id, {"status": "Rejected"})
    assert exc_info.value.code == "PGRST116"


async def test_upsert_merges_duplicates_on_conflict_columns(feed):
    received = []
    feed.subscribe("attendance", received.append)
    recorder = Recorder(httpx.Response(201, json=[{"id": "a1", "present": True}]))

    await _client(recorder, feed).upsert(
        "attendance", [{"profile_id": "p1", "date": "2024-03-04", "present": True}], ["profile_id", "date"],
    )

    request = recorder.last
    assert request.method == "POST"
    assert request.url.params["on_conflict"] == "profile_id,date"
    assert request.headers["Prefer"] == "resolution=merge-duplicates,return=representation"
    assert [e.kind for e in received] == [ChangeKind.update]


async def test_empty_upsert_makes_no_request():
    recorder = Recorder()
    assert await _client(recorder).upsert("attendance", [], ["profile_id", "date"]) == []
    assert recorder.requests == []


async def test_delete_publishes_the_removed_row(feed):
    received = []
    feed.subscribe("notices", received.append)
    recorder = Recorder(
        httpx.Response(200, json=[{"id": "n1", "title": "Gone"}]),
        httpx.Response(200, json=[]),
    )
    rest = _client(recorder, feed)

    await rest.delete("notices", "n1")
    await rest.delete("notices", "n1")

    assert recorder.last.method == "DELETE"
    assert [(e.kind, e.old["id"]) for e in received] == [(ChangeKind.delete, "n1")]


# ═════════════════════════════════════════════════════════════════════
# Errors
# ═════════════════════════════════════════════════════════════════════


async def test_error_body_becomes_remote_error(feed):
    received = []
    feed.subscribe("tasks", received.append)
    recorder = Recorder(httpx.Response(
        403, json={"code": "42501", "message": 'new row violates row-level security policy for table "tasks"'},
    ))

    with pytest.raises(RemoteError) as exc_info:
        await _client(recorder, feed).insert("tasks", [{"title": "x"}])

    assert exc_info.value.code == "42501"
    assert "row-level security" in exc_info.value.message
    assert received == []


async def test_non_json_error_falls_back_to_status():
    recorder = Recorder(httpx.Response(502, text="Bad Gateway"))
    with pytest.raises(RemoteError) as exc_info:
        await _client(recorder).select("tasks")
    assert exc_info.value.code == "502"
    assert exc_info.value.message == "Bad Gateway"


@pytest.mark.parametrize("body", [["upstream", "error"], "maintenance"])
async def test_json_error_body_that_is_not_an_object(body):
    resp = httpx.Response(500, json=body)
    recorder = Recorder(resp)
    with pytest.raises(RemoteError) as exc_info:
        await _client(recorder).select("tasks")
    assert exc_info.value.code == "500"
    assert exc_info.value.message == resp.text


async def test_transport_failure_becomes_remote_error():
    def broken(request):
        raise httpx.ConnectError("connection refused", request=request)

    rest = RestCollectionClient(
        "http://backend.test", "anon-key", client=httpx.AsyncClient(transport=httpx.MockTransport(broken)),
    )
    with pytest.raises(RemoteError, match="connection refused"):
        await rest.select("tasks")
