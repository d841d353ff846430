"""Auth dependencies — bearer-token verification, workspace lookup, admin enforcement."""

from __future__ import annotations

from fastapi import Depends, Request

from workdesk.auth.schemas import Profile
from workdesk.auth.service import AuthService
from workdesk.common.exceptions import AuthError, ForbiddenException
from workdesk.workspace import Workspace, WorkspaceRegistry


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise AuthError("Missing or invalid Authorization header.")
    return auth_header[7:]


def get_registry(request: Request) -> WorkspaceRegistry:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise RuntimeError("Workspace registry is not initialised; is the lifespan running?")
    return registry


def get_token(request: Request) -> str:
    return _extract_bearer(request)


# ── Core dependency ─────────────────────────────────────────────────

async def get_workspace(
    token: str = Depends(get_token),
    registry: WorkspaceRegistry = Depends(get_registry),
) -> Workspace:
    """Verify the access token and return the caller's workspace."""
    claims = AuthService.decode_token(token)
    return await registry.open(claims, token)


async def get_current_user(workspace: Workspace = Depends(get_workspace)) -> Profile:
    return workspace.user


# ── Role-based dependency ───────────────────────────────────────────

async def require_admin(workspace: Workspace = Depends(get_workspace)) -> Workspace:
    """Admins and founders only."""
    if not workspace.user.is_admin:
        raise ForbiddenException("Only admins can perform this action.")
    return workspace
