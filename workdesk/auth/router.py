"""Auth router — sign in, sign up, sign out, current user.

Sign-in and sign-up are rate limited per client address.
"""

from fastapi import APIRouter, Depends, Request

from workdesk.auth.dependencies import (
    get_current_user,
    get_registry,
    get_token,
    get_workspace,
)
from workdesk.auth.schemas import (
    MessageResponse,
    Profile,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
    SignUpResponse,
    UserOut,
)
from workdesk.auth.service import AuthService
from workdesk.common.rate_limit import limiter
from workdesk.workspace import Workspace, WorkspaceRegistry

router = APIRouter(prefix="", tags=["auth"])


# ── POST /login ─────────────────────────────────────────────────────

@router.post("/login", response_model=SessionResponse)
@limiter.limit("10/minute")
async def login(
    request: Request,
    body: SignInRequest,
    registry: WorkspaceRegistry = Depends(get_registry),
):
    """Password sign-in; opens the caller's workspace."""
    session = await AuthService.sign_in(body.email, body.password, client=registry.http)
    token = session["access_token"]
    claims = AuthService.decode_token(token)
    workspace = await registry.open(claims, token)
    return SessionResponse(
        access_token=token,
        refresh_token=session.get("refresh_token"),
        expires_in=session.get("expires_in"),
        user=UserOut.from_profile(workspace.user),
    )


# ── POST /signup ────────────────────────────────────────────────────

@router.post("/signup", response_model=SignUpResponse, status_code=201)
@limiter.limit("5/minute")
async def signup(
    request: Request,
    body: SignUpRequest,
    registry: WorkspaceRegistry = Depends(get_registry),
):
    """Register a new account; the profile row is created by the backend."""
    payload = await AuthService.sign_up(body, client=registry.http)
    user = payload.get("user") or payload
    return SignUpResponse(
        id=user.get("id"),
        email=user.get("email") or body.email,
        confirmation_required="access_token" not in payload,
    )


# ── POST /logout ────────────────────────────────────────────────────

@router.post("/logout", response_model=MessageResponse)
async def logout(
    token: str = Depends(get_token),
    workspace: Workspace = Depends(get_workspace),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    """Revoke the session and release every subscription the workspace holds."""
    await AuthService.sign_out(token, client=registry.http)
    registry.release(workspace.user.id)
    return MessageResponse(message="Signed out.")


# ── GET /me ─────────────────────────────────────────────────────────

@router.get("/me", response_model=UserOut)
async def me(user: Profile = Depends(get_current_user)):
    return UserOut.from_profile(user)
