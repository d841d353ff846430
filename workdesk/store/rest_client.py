"""REST row store — the remote collection contract over the hosted PostgREST API."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

import httpx
from pydantic_core import to_jsonable_python

from workdesk.common.constants import ChangeKind
from workdesk.config import settings
from workdesk.sync.feed import ChangeFeed
from workdesk.sync.remote import ChangeEvent, Query, RemoteError, normalize

logger = logging.getLogger(__name__)

_RETURN_ROWS = "return=representation"


def _literal(value: Any) -> str:
    value = normalize(value)
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _params(query: Query) -> list[tuple[str, str]]:
    """Encode a ``Query`` as PostgREST query-string filters."""
    params: list[tuple[str, str]] = []
    for cond in query.conditions:
        if cond.op == "in":
            values = ",".join(f'"{_literal(v)}"' for v in cond.value)
            params.append((cond.column, f"in.({values})"))
        elif cond.value is None and cond.op in ("eq", "neq"):
            params.append((cond.column, "is.null" if cond.op == "eq" else "not.is.null"))
        else:
            params.append((cond.column, f"{cond.op}.{_literal(cond.value)}"))

    if query.search and query.search.strip() and query.search_columns:
        needle = query.search.strip()
        ors = ",".join(f"{c}.ilike.*{needle}*" for c in query.search_columns)
        params.append(("or", f"({ors})"))

    if query.order:
        params.append((
            "order",
            ",".join(
                f"{o.column}.asc.nullslast" if o.ascending else f"{o.column}.desc.nullsfirst"
                for o in query.order
            ),
        ))
    if query.limit is not None:
        params.append(("limit", str(query.limit)))
    return params


class RestCollectionClient:
    """``RemoteCollection`` backed by ``{SUPABASE_URL}/rest/v1``.

    Requests carry the anon key plus, when given, the signed-in user's access
    token so row-level security applies to them. Successful writes are echoed
    to *feed* so other views in this process see them without a round trip.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        access_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        feed: Optional[ChangeFeed] = None,
    ) -> None:
        self._feed = feed
        self._base_url = (base_url if base_url is not None else settings.SUPABASE_URL).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.SUPABASE_ANON_KEY
        self._access_token = access_token
        self._client = client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ── Transport ───────────────────────────────────────────────────

    def _headers(self, prefer: Optional[str] = None) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._access_token or self._api_key}",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: Sequence[tuple[str, str]] = (),
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> httpx.Response:
        url = f"{self._base_url}/rest/v1/{table}"
        try:
            resp = await self._client.request(
                method,
                url,
                params=list(params),
                json=to_jsonable_python(json) if json is not None else None,
                headers=self._headers(prefer),
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise RemoteError(str(exc) or type(exc).__name__) from exc

        if resp.is_success:
            return resp

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or resp.text or resp.reason_phrase
        raise RemoteError(message, code=body.get("code") or str(resp.status_code))

    def _publish(self, table: str, kind: ChangeKind, rows: Sequence[dict], old: Optional[dict] = None) -> None:
        if self._feed is None:
            return
        for row in rows:
            self._feed.publish(ChangeEvent(table=table, kind=kind, new=row, old=old))

    # ── Reads ───────────────────────────────────────────────────────

    async def select(self, table: str, query: Query = Query()) -> list[dict[str, Any]]:
        resp = await self._request("GET", table, params=[("select", "*"), *_params(query)])
        return resp.json()

    async def count(self, table: str, query: Query = Query()) -> int:
        params = [("select", "*"), *_params(query.model_copy(update={"order": (), "limit": None}))]
        resp = await self._request("HEAD", table, params=params, prefer="count=exact")
        content_range = resp.headers.get("Content-Range", "")
        _, _, total = content_range.partition("/")
        try:
            return int(total)
        except ValueError:
            raise RemoteError(f"Unexpected Content-Range {content_range!r}") from None

    # ── Writes ──────────────────────────────────────────────────────

    async def insert(self, table: str, records: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        resp = await self._request("POST", table, json=list(records), prefer=_RETURN_ROWS)
        rows = resp.json()
        self._publish(table, ChangeKind.insert, rows)
        return rows

    async def update(self, table: str, id: Any, fields: Mapping[str, Any]) -> dict[str, Any]:
        resp = await self._request(
            "PATCH", table, params=[("id", f"eq.{_literal(id)}")], json=dict(fields), prefer=_RETURN_ROWS,
        )
        rows = resp.json()
        if not rows:
            raise RemoteError(f"No {table} row matches id {id}", code="PGRST116")
        self._publish(table, ChangeKind.update, rows[:1])
        return rows[0]

    async def upsert(
        self,
        table: str,
        records: Sequence[Mapping[str, Any]],
        on_conflict: Sequence[str],
    ) -> list[dict[str, Any]]:
        if not records:
            return []
        resp = await self._request(
            "POST",
            table,
            params=[("on_conflict", ",".join(on_conflict))],
            json=list(records),
            prefer=f"resolution=merge-duplicates,{_RETURN_ROWS}",
        )
        rows = resp.json()
        # The response does not say which rows were new; listeners treat both alike.
        self._publish(table, ChangeKind.update, rows)
        return rows

    async def delete(self, table: str, id: Any) -> None:
        resp = await self._request(
            "DELETE", table, params=[("id", f"eq.{_literal(id)}")], prefer=_RETURN_ROWS,
        )
        for row in (resp.json() if resp.content else []):
            self._publish(table, ChangeKind.delete, [{}], old=row)
