"""Deployment pipeline: the coordinator for one repository-to-site run.

Wires the credential brokers, source fetcher, extractor, build detector and
builder, differential uploader and status reporter into a single run:

    fetch -> extract -> build -> upload -> finalize -> release

Every stage transition is tracked by a StageTracker (and recorded in the
Run Ledger when one is attached). The scratch archive and the working tree
belong to the run and are removed before ``deploy`` returns or raises.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

import httpx

from sitecast.auth.profile_store import ProfileStore
from sitecast.auth.refresh import (
    CredentialBroker,
    github_provider,
    gitlab_provider,
    google_provider,
)
from sitecast.build.builder import Builder, resolve_publish_dir
from sitecast.build.detector import detect_project
from sitecast.config import DeployConfig
from sitecast.core.errors import DeployError
from sitecast.core.run_ledger import RunLedger
from sitecast.core.scratch import remove_path, scratch_directory
from sitecast.core.stage_machine import StageTracker
from sitecast.hosting.client import HostingClient
from sitecast.hosting.manifest import build_manifest
from sitecast.hosting.status import StatusReporter
from sitecast.hosting.uploader import DifferentialUploader
from sitecast.models.release import ReleaseRecord
from sitecast.models.result import DeploymentResult
from sitecast.models.source import HostKind, SourceReference
from sitecast.models.stages import DeployStage
from sitecast.source.extractor import extract_archive
from sitecast.source.fetcher import fetch_archive

logger = logging.getLogger(__name__)

T = TypeVar("T")


def new_run_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"deploy-{ts}-{uuid.uuid4().hex[:6]}"


class DeploymentPipeline:
    """Central deployment coordinator.

    Parameters
    ----------
    config:
        Deployment configuration (endpoints, limits, timeouts).
    profile_store:
        Where delegated credentials for every provider live.
    http:
        Shared async HTTP client for every remote call.
    ledger:
        Optional Run Ledger; stage transitions are recorded when present.
    builder:
        Build runner. Defaults to one configured from *config*.
    """

    def __init__(
        self,
        config: DeployConfig,
        profile_store: ProfileStore,
        http: httpx.AsyncClient,
        *,
        ledger: RunLedger | None = None,
        builder: Builder | None = None,
    ) -> None:
        self.config = config
        self.ledger = ledger
        self._http = http
        self.builder = builder or Builder(
            config.build_install_command,
            output_limit=config.build_output_limit_bytes,
            timeout=config.build_timeout_seconds,
        )

        # Credential brokers, one per provider
        self.hosting_broker = CredentialBroker(profile_store, google_provider(config), http)
        self.source_brokers: dict[HostKind, CredentialBroker] = {
            HostKind.GITHUB: CredentialBroker(profile_store, github_provider(config), http),
            HostKind.GITLAB: CredentialBroker(profile_store, gitlab_provider(config), http),
        }

        # Hosting backend
        self.hosting = HostingClient(http, config.hosting_api_url)
        self.uploader = DifferentialUploader(
            self.hosting,
            self.hosting_broker,
            concurrency=config.upload_concurrency,
            upload_timeout=config.upload_timeout_seconds,
            cache_max_age=config.cache_max_age_seconds,
            site_url_template=config.site_url_template,
        )
        self.reporter = StatusReporter(
            self.hosting,
            self.hosting_broker,
            site_url_template=config.site_url_template,
        )

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    async def deploy(
        self,
        user_id: str,
        ref: SourceReference,
        site_id: str,
        *,
        run_id: str | None = None,
    ) -> DeploymentResult:
        """Run every stage for *ref* and publish it to *site_id*.

        Raises a ``DeployError`` subclass naming the failed stage's cause.
        The whole run is bounded by ``config.run_timeout_seconds``.
        """
        run_id = run_id or new_run_id()
        tracker = StageTracker(run_id, self.ledger)
        logger.info("run %s: deploying %s@%s to %s", run_id, ref.slug, ref.ref, site_id)

        timeout = self.config.run_timeout_seconds
        deadline = asyncio.timeout(timeout)
        try:
            async with deadline:
                return await self._run(tracker, user_id, ref, site_id)
        except TimeoutError as exc:
            if not deadline.expired():
                raise
            raise DeployError(f"Deployment run {run_id} exceeded {timeout}s") from exc

    async def _run(
        self,
        tracker: StageTracker,
        user_id: str,
        ref: SourceReference,
        site_id: str,
    ) -> DeploymentResult:
        scratch_root = self.config.resolved_scratch_dir
        archive: Path | None = None
        try:
            async with _stage(tracker, DeployStage.FETCH) as details:
                archive = await self._fetch(user_id, ref, scratch_root)
                details["archive"] = archive.name

            with scratch_directory(scratch_root, ref.owner, ref.repo_name) as workdir:
                async with _stage(tracker, DeployStage.EXTRACT) as details:
                    tree = await _in_thread(extract_archive, archive, workdir)
                    details["tree"] = tree.name

                async with _stage(tracker, DeployStage.BUILD) as details:
                    classification = detect_project(tree)
                    publish_dir = await resolve_publish_dir(tree, classification, self.builder)
                    details.update(
                        kind=classification.kind.value,
                        rule=classification.rule,
                        publish_dir=publish_dir.relative_to(tree).as_posix(),
                    )

                async with _stage(tracker, DeployStage.UPLOAD) as details:
                    version_handle = await self.uploader.open_version(user_id, site_id)
                    details["version_handle"] = version_handle
                    build = await _in_thread(build_manifest, publish_dir)
                    pushed = await self.uploader.push_files(user_id, version_handle, build)
                    details.update(
                        files=len(build.manifest),
                        uploaded=len(pushed.uploaded_hashes),
                        manifest_hash=build.manifest.manifest_hash,
                    )

            async with _stage(tracker, DeployStage.FINALIZE) as details:
                await self.uploader.finalize(user_id, version_handle)
                details["version_handle"] = version_handle

            async with _stage(tracker, DeployStage.RELEASE) as details:
                release = await self.uploader.release(user_id, site_id, version_handle)
                details.update(release_id=release.release_id, url=release.url)
        finally:
            if archive is not None and archive.exists():
                remove_path(archive)

        logger.info("run %s: live at %s", tracker.run_id, release.url)
        return DeploymentResult(
            run_id=tracker.run_id,
            source=ref,
            site_id=site_id,
            classification=classification,
            manifest=build.manifest,
            uploaded_hashes=pushed.uploaded_hashes,
            release=release,
        )

    async def _fetch(self, user_id: str, ref: SourceReference, scratch_root: Path) -> Path:
        broker = self.source_brokers[ref.host_kind]
        return await broker.with_refresh(
            user_id,
            lambda token: fetch_archive(
                self._http,
                token,
                ref,
                scratch_root,
                github_api_url=self.config.github_api_url,
                gitlab_api_url=self.config.gitlab_api_url,
            ),
        )

    # ------------------------------------------------------------------
    # Follow-up operations
    # ------------------------------------------------------------------

    async def status(self, user_id: str, site_id: str, release_id: str) -> ReleaseRecord:
        return await self.reporter.status(user_id, site_id, release_id)

    async def wait_for_release(
        self, user_id: str, site_id: str, release_id: str
    ) -> ReleaseRecord:
        return await self.reporter.wait_for_release(
            user_id,
            site_id,
            release_id,
            timeout=self.config.release_wait_timeout_seconds,
            interval=self.config.release_poll_interval_seconds,
        )

    async def rerelease(
        self, user_id: str, site_id: str, version_handle: str
    ) -> ReleaseRecord:
        """Re-issue a release against an already finalized version."""
        return await self.uploader.release(user_id, site_id, version_handle)

    def version_handle_of(self, run_id: str) -> str | None:
        """Version handle a recorded run finalized, if any."""
        if self.ledger is None:
            return None
        return self.ledger.find_detail(run_id, "version_handle")


@asynccontextmanager
async def _stage(tracker: StageTracker, stage: DeployStage) -> AsyncIterator[dict[str, Any]]:
    """Mark *stage* RUNNING, then PASSED with the collected details or FAILED."""
    tracker.start(stage)
    details: dict[str, Any] = {}
    try:
        yield details
    except BaseException as exc:
        tracker.failed(stage, exc)
        raise
    tracker.passed(stage, **details)


async def _in_thread(func: Callable[..., T], *args: Any) -> T:
    """Run *func* in a worker thread that is never abandoned.

    A worker thread cannot be interrupted, so on cancellation this waits
    for it to finish before re-raising. Scratch cleanup then runs after the
    thread has stopped writing.
    """
    task = asyncio.ensure_future(asyncio.to_thread(func, *args))
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        await asyncio.wait([task])
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Worker %s failed after cancellation: %s", func.__name__, task.exception())
        raise
