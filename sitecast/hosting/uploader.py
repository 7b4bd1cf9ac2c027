"""Differential uploader and publish finalizer.

Sequence for one deployment (strictly ordered except the upload fan-out):

    open_version -> populate -> upload missing hashes (concurrent)
        -> finalize -> release

Only hashes the backend reports missing are uploaded, each exactly once,
even when several paths share content. Any single upload failure fails the
whole run and cancels the uploads still in flight; recovery is a fresh run.

Once ``finalize`` succeeds the version is immutable; ``release`` is what
makes it live and may be re-issued against the same version handle.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from sitecast.auth.refresh import CredentialBroker
from sitecast.core.errors import ManifestOrUploadFailed
from sitecast.core.hasher import gzip_bytes
from sitecast.hosting.client import FINALIZED, HostingClient
from sitecast.hosting.manifest import ManifestBuild, build_manifest
from sitecast.hosting.status import DEFAULT_SITE_URL, release_record_from
from sitecast.models.release import ReleaseRecord

logger = logging.getLogger(__name__)


@dataclass
class PushResult:
    """What populate asked for and what was sent."""

    required_hashes: list[str]
    uploaded_hashes: list[str] = field(default_factory=list)


class DifferentialUploader:
    """Uploads only the bytes the hosting backend does not already hold.

    Parameters
    ----------
    client:
        Hosting backend client.
    broker:
        Credential broker for the hosting provider; every call goes through it.
    concurrency:
        Maximum uploads in flight at once.
    upload_timeout:
        Seconds allowed per file upload; ``None`` for unbounded.
    """

    def __init__(
        self,
        client: HostingClient,
        broker: CredentialBroker,
        *,
        concurrency: int = 16,
        upload_timeout: float | None = 300.0,
        cache_max_age: int = 3600,
        site_url_template: str = DEFAULT_SITE_URL,
    ) -> None:
        self._client = client
        self._broker = broker
        self._concurrency = max(1, concurrency)
        self._upload_timeout = upload_timeout
        self._cache_max_age = cache_max_age
        self._site_url_template = site_url_template

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def open_version(self, user_id: str, site_id: str) -> str:
        version_handle = await self._broker.with_refresh(
            user_id,
            lambda token: self._client.create_version(
                token, site_id, cache_max_age=self._cache_max_age
            ),
        )
        logger.info("Opened version %s", version_handle)
        return version_handle

    async def push_files(
        self, user_id: str, version_handle: str, build: ManifestBuild
    ) -> PushResult:
        """Populate the manifest and upload exactly the missing hashes."""
        files = build.manifest.files
        required, upload_url = await self._broker.with_refresh(
            user_id,
            lambda token: self._client.populate_files(token, version_handle, files),
        )

        # Distinct, in the backend's order.
        to_upload = list(dict.fromkeys(required))
        unknown = [h for h in to_upload if h not in build.manifest.hashes]
        if unknown:
            raise ManifestOrUploadFailed(
                f"Backend requested {len(unknown)} hash(es) not in the manifest: "
                + ", ".join(h[:12] for h in unknown[:5])
            )

        logger.info(
            "Populate: %d of %d distinct hashes required",
            len(to_upload),
            len(build.manifest.hashes),
        )
        if to_upload:
            await self._upload_all(user_id, upload_url, to_upload, build)
        return PushResult(required_hashes=list(required), uploaded_hashes=to_upload)

    async def _upload_all(
        self,
        user_id: str,
        upload_url: str,
        digests: list[str],
        build: ManifestBuild,
    ) -> None:
        semaphore = asyncio.Semaphore(self._concurrency)

        async def upload_one(digest: str) -> None:
            raw = build.content_for_hash(digest)
            body = gzip_bytes(raw)
            async with semaphore:
                async with asyncio.timeout(self._upload_timeout):
                    await self._broker.with_refresh(
                        user_id,
                        lambda token: self._client.upload_file(
                            token, upload_url, digest, body
                        ),
                    )
            logger.debug("Uploaded %s (%s)", digest[:12], build.manifest.paths_for(digest)[0])

        # TaskGroup cancels the remaining uploads on the first failure.
        try:
            async with asyncio.TaskGroup() as group:
                for digest in digests:
                    group.create_task(upload_one(digest))
        except ExceptionGroup as eg:
            raise self._first_failure(eg) from eg

    def _first_failure(self, group: ExceptionGroup) -> Exception:
        first = group.exceptions[0]
        if isinstance(first, ExceptionGroup):
            return self._first_failure(first)
        if isinstance(first, TimeoutError):
            return ManifestOrUploadFailed(
                f"File upload timed out after {self._upload_timeout}s"
            )
        return first

    async def finalize(self, user_id: str, version_handle: str) -> None:
        """Finalize the version; a no-op if it is already FINALIZED."""

        async def _finalize(token: str) -> None:
            try:
                await self._client.finalize_version(token, version_handle)
            except ManifestOrUploadFailed as exc:
                if exc.status_code not in (400, 409):
                    raise
                current = await self._client.get_version(token, version_handle)
                if current.get("status") != FINALIZED:
                    raise
                logger.info("Version %s was already finalized", version_handle)

        await self._broker.with_refresh(user_id, _finalize)
        logger.info("Finalized version %s", version_handle)

    async def release(
        self, user_id: str, site_id: str, version_handle: str
    ) -> ReleaseRecord:
        """Create a release of a finalized version; safe to re-issue."""
        data = await self._broker.with_refresh(
            user_id,
            lambda token: self._client.create_release(token, site_id, version_handle),
        )
        record = release_record_from(
            data,
            site_id=site_id,
            version_handle=version_handle,
            site_url_template=self._site_url_template,
        )
        logger.info("Released %s as %s (%s)", version_handle, record.release_id, record.url)
        return record

    # ------------------------------------------------------------------
    # Composite
    # ------------------------------------------------------------------

    async def upload(self, user_id: str, site_id: str, publish_dir: Path) -> ReleaseRecord:
        """Full differential publish of *publish_dir* to *site_id*."""
        version_handle = await self.open_version(user_id, site_id)
        build = await asyncio.to_thread(build_manifest, publish_dir)
        await self.push_files(user_id, version_handle, build)
        await self.finalize(user_id, version_handle)
        return await self.release(user_id, site_id, version_handle)
