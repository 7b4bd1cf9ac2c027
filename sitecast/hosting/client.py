"""Hosting backend REST client (Firebase Hosting v1beta1 shape).

One method per endpoint, each taking the access token explicitly so the
caller can route it through the credential refresh wrapper. Non-2xx
responses become ``ManifestOrUploadFailed`` (``StatusUnavailable`` for
release reads) carrying the HTTP status.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from sitecast.core.errors import ManifestOrUploadFailed, StatusUnavailable
from sitecast.core.http import raise_for_status

logger = logging.getLogger(__name__)

DEFAULT_HOSTING_API = "https://firebasehosting.googleapis.com/v1beta1"

FINALIZED = "FINALIZED"


def _bearer(token: str, *, json_body: bool = True) -> dict[str, str]:
    headers = {"Authorization": f"Bearer {token}"}
    if json_body:
        headers["Content-Type"] = "application/json"
    return headers


class HostingClient:
    """Thin async wrapper over the hosting backend's REST endpoints.

    Parameters
    ----------
    http:
        Shared ``httpx.AsyncClient``.
    api_url:
        Base URL of the hosting API.
    """

    def __init__(self, http: httpx.AsyncClient, api_url: str = DEFAULT_HOSTING_API) -> None:
        self._http = http
        self.api_url = api_url.rstrip("/")

    def _version_url(self, version_handle: str) -> str:
        # Version handles look like "sites/{site}/versions/{id}".
        if version_handle.startswith("https://"):
            return version_handle
        return f"{self.api_url}/{version_handle}"

    async def _send(
        self,
        method: str,
        url: str,
        action: str,
        error_cls: type = ManifestOrUploadFailed,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise error_cls(f"{action}: {exc}") from exc
        await raise_for_status(response, action, error_cls)
        return response

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    async def create_version(
        self, token: str, site_id: str, *, cache_max_age: int = 3600
    ) -> str:
        """Open a new version; returns its handle (``sites/../versions/..``)."""
        body = {
            "config": {
                "headers": [
                    {
                        "glob": "**",
                        "headers": {"Cache-Control": f"max-age={cache_max_age}"},
                    }
                ]
            }
        }
        response = await self._send(
            "POST",
            f"{self.api_url}/sites/{site_id}/versions",
            "Failed to create version",
            json=body,
            headers=_bearer(token),
        )
        data = response.json()
        version_handle = data.get("name")
        if not version_handle:
            raise ManifestOrUploadFailed(
                f"Version name not returned from version creation: {data!r}",
                status_code=response.status_code,
            )
        return version_handle

    async def populate_files(
        self, token: str, version_handle: str, files: dict[str, str]
    ) -> tuple[list[str], str]:
        """Submit the manifest; returns (required hashes, upload URL)."""
        response = await self._send(
            "POST",
            f"{self._version_url(version_handle)}:populateFiles",
            "Failed to populate files",
            json={"files": files},
            headers=_bearer(token),
        )
        data = response.json()
        upload_url = data.get("uploadUrl")
        required = list(data.get("uploadRequiredHashes") or [])
        if required and not upload_url:
            raise ManifestOrUploadFailed(
                "Upload URL not returned from populateFiles",
                status_code=response.status_code,
            )
        return required, upload_url or ""

    async def upload_file(
        self, token: str, upload_url: str, digest: str, body: bytes
    ) -> None:
        """Upload one gzipped file body to its hash-specific address."""
        await self._send(
            "POST",
            f"{upload_url.rstrip('/')}/{digest}",
            f"Failed to upload file {digest[:12]}",
            content=body,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/octet-stream",
            },
        )

    async def get_version(self, token: str, version_handle: str) -> dict[str, Any]:
        response = await self._send(
            "GET",
            self._version_url(version_handle),
            "Failed to read version",
            headers=_bearer(token),
        )
        return response.json()

    async def finalize_version(self, token: str, version_handle: str) -> dict[str, Any]:
        """Mark the version FINALIZED (partial update of the status field)."""
        response = await self._send(
            "PATCH",
            self._version_url(version_handle),
            "Failed to finalize version",
            params={"update_mask": "status"},
            json={"status": FINALIZED},
            headers=_bearer(token),
        )
        return response.json()

    # ------------------------------------------------------------------
    # Releases
    # ------------------------------------------------------------------

    async def create_release(
        self, token: str, site_id: str, version_handle: str
    ) -> dict[str, Any]:
        """Make *version_handle* the live version of *site_id*."""
        response = await self._send(
            "POST",
            f"{self.api_url}/sites/{site_id}/releases",
            "Failed to create release",
            params={"versionName": version_handle},
            headers=_bearer(token, json_body=False),
        )
        return response.json()

    async def get_release(
        self, token: str, site_id: str, release_id: str
    ) -> dict[str, Any]:
        response = await self._send(
            "GET",
            f"{self.api_url}/sites/{site_id}/releases/{release_id}",
            "Failed to get deployment status",
            StatusUnavailable,
            headers=_bearer(token),
        )
        return response.json()
