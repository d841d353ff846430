"""Auth service — hosted auth API calls, access-token verification, profile resolution."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Optional

import httpx
from jose import ExpiredSignatureError, JWTError, jwt

from workdesk.auth.schemas import PROFILES, Profile, SignUpRequest
from workdesk.common.exceptions import AuthError, AuthTimeout
from workdesk.config import settings
from workdesk.sync.remote import Query, RemoteCollection, RemoteError

logger = logging.getLogger(__name__)


def _auth_url(path: str) -> str:
    return f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/{path}"


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    return (
        body.get("error_description")
        or body.get("msg")
        or body.get("message")
        or body.get("error")
        or resp.reason_phrase
    )


class AuthService:
    """Static-method service wrapping the hosted auth API (``/auth/v1``)."""

    @staticmethod
    async def _post(
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> httpx.Response:
        headers = {"apikey": settings.SUPABASE_ANON_KEY}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            if client is not None:
                return await client.post(_auth_url(path), json=json, headers=headers)
            async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as own:
                return await own.post(_auth_url(path), json=json, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Auth request %s failed: %s", path, exc)
            raise AuthError(str(exc) or "An unexpected error occurred") from exc

    # ── Sign in / up / out ──────────────────────────────────────────

    @staticmethod
    async def sign_in(
        email: str,
        password: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> dict[str, Any]:
        """Password grant. Returns the session payload (tokens + ``user``)."""
        resp = await AuthService._post(
            "token?grant_type=password",
            json={"email": email, "password": password},
            client=client,
        )
        if resp.status_code != 200:
            raise AuthError(_error_message(resp))
        return resp.json()

    @staticmethod
    async def sign_up(
        body: SignUpRequest,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> dict[str, Any]:
        """Register; ``name`` and ``role`` travel as user metadata for the profile trigger."""
        resp = await AuthService._post(
            "signup",
            json={
                "email": body.email,
                "password": body.password,
                "data": {"name": body.name, "role": body.role.value},
            },
            client=client,
        )
        if resp.status_code not in (200, 201):
            raise AuthError(_error_message(resp))
        return resp.json()

    @staticmethod
    async def sign_out(token: str, *, client: Optional[httpx.AsyncClient] = None) -> None:
        resp = await AuthService._post("logout", token=token, client=client)
        if resp.status_code not in (200, 204):
            # The local session is dropped regardless.
            logger.warning("Sign-out rejected by auth API: %s", _error_message(resp))

    # ── Token verification ──────────────────────────────────────────

    @staticmethod
    def decode_token(token: str) -> dict[str, Any]:
        """Verify an access token issued by the hosted auth API."""
        try:
            payload = jwt.decode(
                token,
                settings.SUPABASE_JWT_SECRET,
                algorithms=[settings.JWT_ALGORITHM],
                audience=settings.JWT_AUDIENCE,
            )
        except ExpiredSignatureError:
            raise AuthError("Token has expired.")
        except JWTError:
            raise AuthError("Invalid token.")

        if not payload.get("sub") or not payload.get("email"):
            raise AuthError("Token is missing subject or email.")
        return payload

    # ── Profile resolution ──────────────────────────────────────────

    @staticmethod
    async def fetch_profile(
        remote: RemoteCollection,
        user_id: uuid.UUID,
        timeout: float,
    ) -> Optional[Profile]:
        """Read the stored profile; raises ``AuthTimeout`` past *timeout* seconds."""
        try:
            rows = await asyncio.wait_for(
                remote.select(PROFILES.table, Query().eq("id", user_id).take(1)),
                timeout,
            )
        except asyncio.TimeoutError:
            raise AuthTimeout(f"Profile fetch timed out after {timeout:g}s") from None
        if not rows:
            return None
        return PROFILES.from_row(rows[0])

    @staticmethod
    async def resolve_profile(
        remote: RemoteCollection,
        user_id: uuid.UUID,
        email: str,
        *,
        timeout: Optional[float] = None,
    ) -> Profile:
        """Stored profile, or the fallback profile when it can't be read in time."""
        timeout = settings.PROFILE_FETCH_TIMEOUT_SECONDS if timeout is None else timeout
        try:
            profile = await AuthService.fetch_profile(remote, user_id, timeout)
        except (AuthTimeout, RemoteError) as exc:
            logger.warning("Profile fetch failed for %s, using fallback: %s", email, exc)
            return Profile.fallback(user_id, email)

        if profile is None:
            logger.warning("No profile row for %s, using fallback", email)
            return Profile.fallback(user_id, email)
        return profile
