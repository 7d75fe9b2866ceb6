"""
HTTP blob store for extracted-data payloads kept in object storage.

A location is either a full URL or a key inside STORAGE_BUCKET_NAME under
STORAGE_ENDPOINT.
"""

from __future__ import annotations

import httpx

from docflow.core.config import settings
from docflow.pipeline.errors import StorageError


class HttpBlobStore:
    def __init__(
        self,
        endpoint: str | None = None,
        bucket: str | None = None,
        access_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = (endpoint or settings.STORAGE_ENDPOINT).rstrip("/")
        self.bucket = bucket or settings.STORAGE_BUCKET_NAME
        self.access_token = access_token if access_token is not None else settings.STORAGE_ACCESS_TOKEN
        self.transport = transport

    def url_for(self, location: str) -> str:
        if location.startswith(("http://", "https://")):
            return location
        return f"{self.endpoint}/{self.bucket}/{location.lstrip('/')}"

    async def fetch_text(self, location: str) -> str:
        headers = {"Authorization": f"Bearer {self.access_token}"} if self.access_token else {}
        url = self.url_for(location)
        try:
            async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS, transport=self.transport) as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise StorageError(f"Failed to download extracted data from '{location}': {exc}") from exc

        if not response.is_success:
            raise StorageError(
                f"Failed to download extracted data from '{location}': HTTP {response.status_code}",
                details={"status_code": response.status_code, "url": url},
            )
        return response.text
