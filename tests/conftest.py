"""Shared test fixtures — async DB, client, auth helpers, factories, remote doubles.

Reusable across all test modules (sync layer, auth, attendance, leave, etc.).
Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL, and
``httpx.MockTransport`` in place of the hosted auth / storage API.
"""

from __future__ import annotations

import os

# Set test settings before any other import touches pydantic-settings
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")
os.environ.setdefault("SUPABASE_URL", "http://backend.test")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-test-key")
os.environ.setdefault("ROW_STORE", "sql")

import asyncio
import json
import uuid
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Any, AsyncGenerator, Mapping, Optional, Sequence

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from workdesk.auth.schemas import Profile
from workdesk.common.constants import UserRole
from workdesk.config import settings
from workdesk.database import Base
from workdesk.main import create_app
from workdesk.store import models
from workdesk.store.storage import StorageClient
from workdesk.sync.feed import ChangeFeed
from workdesk.sync.remote import Query, RemoteError, normalize
from workdesk.workspace import Workspace, build_registry


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from workdesk.common.rate_limit import limiter
    try:
        if hasattr(limiter, '_storage'):
            limiter._storage.reset()
    except Exception:
        pass
    yield


async def _insert(model: Any, *rows: dict) -> None:
    """Seed rows directly, bypassing the change feed."""
    async with TestSessionFactory() as session:
        session.add_all([model(**row) for row in rows])
        await session.commit()


# ── Hosted API double ───────────────────────────────────────────────

class BackendStub:
    """Auth and storage endpoints of the hosted backend, served through ``MockTransport``."""

    def __init__(self) -> None:
        self.accounts: dict[str, dict[str, Any]] = {}
        self.uploads: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []
        self.storage_error: Optional[str] = None

    def add_account(self, profile: dict, password: str = "correct-horse") -> None:
        self.accounts[profile["email"]] = {"id": profile["id"], "password": password}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/auth/v1/token":
            body = json.loads(request.content)
            account = self.accounts.get(body["email"])
            if account is None or account["password"] != body["password"]:
                return httpx.Response(
                    400,
                    json={"error": "invalid_grant", "error_description": "Invalid login credentials"},
                )
            return httpx.Response(200, json={
                "access_token": create_access_token(account["id"], body["email"]),
                "refresh_token": uuid.uuid4().hex,
                "token_type": "bearer",
                "expires_in": 3600,
                "user": {"id": str(account["id"]), "email": body["email"]},
            })

        if path == "/auth/v1/signup":
            body = json.loads(request.content)
            if body["email"] in self.accounts:
                return httpx.Response(422, json={"msg": "User already registered"})
            new_id = uuid.uuid4()
            self.accounts[body["email"]] = {"id": new_id, "password": body["password"]}
            return httpx.Response(200, json={"id": str(new_id), "email": body["email"]})

        if path == "/auth/v1/logout":
            return httpx.Response(204)

        if path.startswith("/storage/v1/object/"):
            if self.storage_error:
                return httpx.Response(400, json={"message": self.storage_error})
            self.uploads[path] = request.content
            return httpx.Response(200, json={"Key": path.removeprefix("/storage/v1/object/")})

        return httpx.Response(404, json={"message": f"No route for {path}"})


@pytest.fixture
def backend() -> BackendStub:
    return BackendStub()


# ── Workspaces over the SQL row store ───────────────────────────────

@pytest.fixture
async def registry(backend):
    """Registry wired to the SQLite row store and the hosted API double."""
    http = httpx.AsyncClient(transport=httpx.MockTransport(backend.handler))
    reg = build_registry(
        row_store="sql",
        session_factory=TestSessionFactory,
        http=http,
        load_timeout=5.0,
        profile_timeout=1.0,
    )
    yield reg
    await reg.aclose()
    await http.aclose()


async def open_workspace(registry, profile: dict) -> Workspace:
    token = create_access_token(profile["id"], profile["email"])
    return await registry.open({"sub": str(profile["id"]), "email": profile["email"]}, token)


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app(registry):
    """Create a fresh app instance sharing the test registry."""
    application = create_app()
    application.state.registry = registry
    yield application


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Model factories ─────────────────────────────────────────────────

def _make_profile(
    *,
    name: Optional[str] = "Test User",
    email: Optional[str] = None,
    role: UserRole = UserRole.employee,
    department: Optional[str] = "Engineering",
) -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        email=email or f"user.{uuid.uuid4().hex[:8]}@workdesk.io",
        role=role.value,
        department=department,
        avatar_url=None,
        created_at=datetime.now(timezone.utc),
    )


def _make_task(
    *,
    title: str = "Write report",
    description: str = "",
    status: str = "pending",
    priority: str = "medium",
    assignee_id: Optional[uuid.UUID] = None,
    created_at: Optional[datetime] = None,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        title=title,
        description=description,
        status=status,
        priority=priority,
        assignee_id=assignee_id,
        due_date=None,
        created_at=created_at or datetime.now(timezone.utc),
    )


def _make_notice(
    *,
    title: str = "Office closed Friday",
    content: str = "The office is closed for maintenance.",
    type: str = "announcement",
    is_pinned: bool = False,
    author_id: Optional[uuid.UUID] = None,
    created_at: Optional[datetime] = None,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        title=title,
        content=content,
        type=type,
        is_pinned=is_pinned,
        author_id=author_id,
        created_at=created_at or datetime.now(timezone.utc),
    )


def _make_leave(
    profile_id: uuid.UUID,
    *,
    start_date: date = date(2024, 5, 6),
    end_date: date = date(2024, 5, 8),
    leave_type: str = "Casual",
    status: str = "Pending",
    reason: str = "Family trip",
    created_at: Optional[datetime] = None,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        profile_id=profile_id,
        leave_type=leave_type,
        start_date=start_date,
        end_date=end_date,
        duration_days=max(1, (end_date - start_date).days + 1),
        reason=reason,
        status=status,
        created_at=created_at or datetime.now(timezone.utc),
    )


def _make_employee(
    profile_id: uuid.UUID,
    *,
    designation: str = "Engineer",
    department: str = "Engineering",
    joining_date: Optional[date] = date(2024, 1, 15),
    status: str = "active",
) -> dict:
    return dict(
        id=uuid.uuid4(),
        profile_id=profile_id,
        designation=designation,
        department=department,
        phone="+10000000",
        joining_date=joining_date,
        status=status,
    )


def _make_mark(profile_id: uuid.UUID, on: date, present: bool = True) -> dict:
    return dict(id=uuid.uuid4(), profile_id=profile_id, date=on, present=present)


@pytest.fixture
async def admin() -> dict:
    data = _make_profile(name="Ada Admin", email="ada@workdesk.io", role=UserRole.admin)
    await _insert(models.Profile, data)
    return data


@pytest.fixture
async def employee() -> dict:
    data = _make_profile(name="Eve Employee", email="eve@workdesk.io")
    await _insert(models.Profile, data)
    return data


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    profile_id: uuid.UUID,
    email: str,
    *,
    expired: bool = False,
    secret: Optional[str] = None,
) -> str:
    """Mint an access token the way the hosted auth API does."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {
        "sub": str(profile_id),
        "email": email,
        "aud": settings.JWT_AUDIENCE,
        "role": "authenticated",
        "exp": exp,
    }
    return jwt.encode(
        payload, secret or settings.SUPABASE_JWT_SECRET, algorithm=settings.JWT_ALGORITHM,
    )


def auth_headers(profile: dict) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(profile['id'], profile['email'])}"}


@pytest.fixture
def admin_headers(admin) -> dict[str, str]:
    return auth_headers(admin)


@pytest.fixture
def employee_headers(employee) -> dict[str, str]:
    return auth_headers(employee)


# ── Scripted remote (unit tests of the sync layer) ──────────────────

class ScriptedRemote:
    """In-memory ``RemoteCollection`` whose calls can be held, released out of order, or failed.

    An operation is held when ``"<op>"`` or ``"<op>:<table>"`` is in
    ``holding``; ``release(i, error)`` resumes the i-th held call, raising
    *error* from it when given. ``failures`` fails the next call of an op.
    """

    def __init__(self, **tables: Sequence[Mapping[str, Any]]) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for name, rows in tables.items():
            self.tables[name] = [dict(r) for r in rows]
        self.holding: set[str] = set()
        self.held: list[tuple[str, asyncio.Future]] = []
        self.failures: dict[str, RemoteError] = {}
        self.calls: list[tuple[str, str, Any]] = []

    async def _gate(self, op: str, table: str, payload: Any) -> None:
        self.calls.append((op, table, payload))
        if op in self.holding or f"{op}:{table}" in self.holding:
            future = asyncio.get_running_loop().create_future()
            self.held.append((f"{op}:{table}", future))
            error = await future
        else:
            error = self.failures.pop(op, None)
        if error is not None:
            raise error

    def release(self, index: int = 0, error: Optional[RemoteError] = None) -> None:
        _, future = self.held.pop(index)
        future.set_result(error)

    def _find(self, table: str, match: Mapping[str, Any]) -> Optional[dict[str, Any]]:
        for row in self.tables[table]:
            if all(normalize(row.get(k)) == normalize(v) for k, v in match.items()):
                return row
        return None

    async def select(self, table: str, query: Query = Query()) -> list[dict[str, Any]]:
        await self._gate("select", table, query)
        rows = [dict(r) for r in self.tables[table] if query.matches(r)]
        return rows[: query.limit] if query.limit else rows

    async def count(self, table: str, query: Query = Query()) -> int:
        await self._gate("count", table, query)
        return sum(1 for r in self.tables[table] if query.matches(r))

    async def insert(self, table, records):
        await self._gate("insert", table, list(records))
        rows = [dict(r) for r in records]
        self.tables[table].extend(rows)
        return rows

    async def update(self, table, id, fields):
        await self._gate("update", table, dict(fields))
        row = self._find(table, {"id": id})
        if row is None:
            raise RemoteError(f"No {table} row matches id {id}", code="PGRST116")
        row.update(fields)
        return dict(row)

    async def upsert(self, table, records, on_conflict):
        await self._gate("upsert", table, list(records))
        written = []
        for record in records:
            row = self._find(table, {c: record[c] for c in on_conflict})
            if row is None:
                row = dict(record)
                self.tables[table].append(row)
            else:
                row.update(record)
            written.append(dict(row))
        return written

    async def delete(self, table, id):
        await self._gate("delete", table, id)
        row = self._find(table, {"id": id})
        if row is not None:
            self.tables[table].remove(row)


@pytest.fixture
async def storage() -> AsyncGenerator[StorageClient, None]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
    yield StorageClient("http://backend.test", "anon-test-key", client=http)
    await http.aclose()


@pytest.fixture
def scripted_workspace(storage):
    """Build a workspace for *user* over a ``ScriptedRemote``; closed at teardown."""
    opened: list[Workspace] = []

    def _open(remote: ScriptedRemote, user: dict, *, feed: Optional[ChangeFeed] = None) -> Workspace:
        workspace = Workspace(
            Profile.model_validate(user), "test-token", remote, feed or ChangeFeed(), storage,
        )
        opened.append(workspace)
        return workspace

    yield _open
    for workspace in opened:
        workspace.close()
