"""HTTP client for the external binary upload service."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from dispute_service.exceptions import UpstreamError
from dispute_service.models import StoredUpload

if TYPE_CHECKING:
    from dispute_service.models import EvidenceFile


class UploadClient:
    """Async client that stores evidence files and returns their references."""

    def __init__(self, base_url: str, timeout_seconds: int) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=float(timeout_seconds),
        )

    async def store(self, file: EvidenceFile) -> StoredUpload:
        """Upload file content; returns url and public id on success."""
        try:
            response = await self._client.post(
                "/upload",
                files={"file": (file.filename, file.content, file.content_type)},
            )
        except httpx.HTTPError as exc:
            raise UpstreamError(
                "UPLOAD_SERVICE_UNAVAILABLE",
                "Cannot reach upload service",
            ) from exc

        if not 200 <= response.status_code < 300:
            raise UpstreamError(
                "UPLOAD_SERVICE_UNAVAILABLE",
                f"Upload service returned unexpected status {response.status_code}",
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamError(
                "UPLOAD_SERVICE_UNAVAILABLE",
                "Upload service returned malformed response",
            ) from exc

        data = body.get("data", body) if isinstance(body, dict) else None
        url = data.get("url") if isinstance(data, dict) else None
        public_id = data.get("publicId") if isinstance(data, dict) else None
        if not isinstance(url, str) or not isinstance(public_id, str) or not url or not public_id:
            raise UpstreamError(
                "UPLOAD_SERVICE_UNAVAILABLE",
                "Upload service returned malformed response",
            )
        return StoredUpload(url=url, public_id=public_id)

    async def delete(self, public_id: str) -> None:
        """Remove a stored file."""
        try:
            response = await self._client.delete(f"/upload/{public_id}")
        except httpx.HTTPError as exc:
            raise UpstreamError(
                "UPLOAD_SERVICE_UNAVAILABLE",
                "Cannot reach upload service",
            ) from exc

        if response.status_code not in (200, 202, 204, 404):
            raise UpstreamError(
                "UPLOAD_SERVICE_UNAVAILABLE",
                f"Upload service returned unexpected status {response.status_code}",
            )

    async def close(self) -> None:
        """Close the underlying async client."""
        await self._client.aclose()
