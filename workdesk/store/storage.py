"""Object storage — avatar uploads to the hosted backend's storage API."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from workdesk.config import settings
from workdesk.sync.remote import RemoteError

logger = logging.getLogger(__name__)


class StorageClient:
    """Upload to ``/storage/v1/object/<bucket>/<path>`` and build public URLs."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        bucket: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = (base_url if base_url is not None else settings.SUPABASE_URL).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.SUPABASE_ANON_KEY
        self.bucket = bucket or settings.AVATAR_BUCKET
        self._client = client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def public_url(self, path: str) -> str:
        return f"{self._base_url}/storage/v1/object/public/{self.bucket}/{path}"

    async def upload(
        self,
        path: str,
        content: bytes,
        content_type: str,
        *,
        access_token: Optional[str] = None,
    ) -> str:
        """Store *content* at *path* (overwriting) and return its public URL."""
        url = f"{self._base_url}/storage/v1/object/{self.bucket}/{path}"
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {access_token or self._api_key}",
            "Content-Type": content_type,
            "x-upsert": "true",
        }
        try:
            resp = await self._client.post(url, content=content, headers=headers)
        except httpx.HTTPError as exc:
            raise RemoteError(str(exc) or type(exc).__name__) from exc

        if not resp.is_success:
            try:
                message = resp.json().get("message") or resp.text
            except ValueError:
                message = resp.text
            raise RemoteError(message or resp.reason_phrase, code=str(resp.status_code))

        logger.info("Uploaded %d bytes to %s/%s", len(content), self.bucket, path)
        return self.public_url(path)
