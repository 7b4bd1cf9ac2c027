"""Source fetcher: download a repository snapshot as a gzipped tarball.

Two host kinds are supported, each with its own auth header convention:

- GitHub:  ``Authorization: token <t>``; archive URL built directly.
- GitLab:  ``PRIVATE-TOKEN: <t>``; the numeric project id must be looked up
  by ``owner/repo`` before the archive URL can be built.

The body is streamed straight to a scratch file. On any failure the partial
file is removed before the error propagates.
"""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import quote

import httpx

from sitecast.core.errors import FetchFailed
from sitecast.core.http import raise_for_status
from sitecast.core.scratch import remove_path, scratch_name
from sitecast.models.source import HostKind, SourceReference

logger = logging.getLogger(__name__)

DEFAULT_GITHUB_API = "https://api.github.com"
DEFAULT_GITLAB_API = "https://gitlab.com/api/v4"

_CHUNK_SIZE = 64 * 1024


def auth_headers(host_kind: HostKind, token: str) -> dict[str, str]:
    """Host-specific authentication headers."""
    if host_kind == HostKind.GITHUB:
        return {
            "Authorization": f"token {token}",
            "Accept": "application/vnd.github.v3.raw",
        }
    return {"PRIVATE-TOKEN": token}


async def gitlab_project_id(
    http: httpx.AsyncClient, token: str, ref: SourceReference, api_url: str
) -> int:
    """Resolve ``owner/repo`` to GitLab's numeric project id."""
    url = f"{api_url.rstrip('/')}/projects/{quote(ref.slug, safe='')}"
    response = await http.get(url, headers=auth_headers(HostKind.GITLAB, token))
    await raise_for_status(response, "Failed to get GitLab project", FetchFailed)
    project_id = response.json().get("id")
    if not project_id:
        raise FetchFailed("Project ID not found in GitLab response")
    return project_id


async def archive_url(
    http: httpx.AsyncClient,
    token: str,
    ref: SourceReference,
    *,
    github_api_url: str = DEFAULT_GITHUB_API,
    gitlab_api_url: str = DEFAULT_GITLAB_API,
) -> str:
    """Build the archive-download URL for *ref*."""
    if ref.host_kind == HostKind.GITHUB:
        return (
            f"{github_api_url.rstrip('/')}/repos/{quote(ref.owner)}/"
            f"{quote(ref.repo_name)}/tarball/{quote(ref.ref, safe='')}"
        )
    project_id = await gitlab_project_id(http, token, ref, gitlab_api_url)
    return (
        f"{gitlab_api_url.rstrip('/')}/projects/{project_id}"
        f"/repository/archive.tar.gz?sha={quote(ref.ref, safe='')}"
    )


async def fetch_archive(
    http: httpx.AsyncClient,
    token: str,
    ref: SourceReference,
    scratch_dir: Path,
    *,
    github_api_url: str = DEFAULT_GITHUB_API,
    gitlab_api_url: str = DEFAULT_GITLAB_API,
) -> Path:
    """Download *ref* into a uniquely named archive under *scratch_dir*.

    Returns the archive path only on success. Raises ``FetchFailed``
    (carrying the HTTP status where there is one) on any failure.
    """
    scratch_dir = Path(scratch_dir)
    scratch_dir.mkdir(parents=True, exist_ok=True)
    archive_path = scratch_dir / scratch_name(
        ref.host_kind.value, ref.owner, ref.repo_name, suffix=".tar.gz"
    )

    try:
        url = await archive_url(
            http,
            token,
            ref,
            github_api_url=github_api_url,
            gitlab_api_url=gitlab_api_url,
        )
        logger.info("Fetching %s@%s from %s", ref.slug, ref.ref, ref.host_kind.value)
        async with http.stream(
            "GET",
            url,
            headers=auth_headers(ref.host_kind, token),
            follow_redirects=True,
        ) as response:
            await raise_for_status(
                response, f"Failed to download {ref.host_kind.value} tarball", FetchFailed
            )
            size = 0
            with archive_path.open("wb") as fh:
                async for chunk in response.aiter_bytes(_CHUNK_SIZE):
                    fh.write(chunk)
                    size += len(chunk)
    except httpx.TransportError as exc:
        remove_path(archive_path)
        raise FetchFailed(f"Network error fetching {ref.slug}: {exc}") from exc
    except OSError as exc:
        remove_path(archive_path)
        raise FetchFailed(f"Could not write archive for {ref.slug}: {exc}") from exc
    except BaseException:
        # FetchFailed, cancellation, disk errors: never leave a partial archive.
        remove_path(archive_path)
        raise

    logger.info("Fetched %s (%d bytes) to %s", ref.slug, size, archive_path)
    return archive_path
