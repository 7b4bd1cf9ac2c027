"""End-to-end integration tests: full deployment runs against fake remotes.

These exercise the DeploymentPipeline, credential brokers, fetcher,
extractor, detector, builder, uploader, status reporter and RunLedger
working together.
"""

from __future__ import annotations

import json
import threading
import time
from pathlib import Path

import pytest

from sitecast.auth.profile_store import InMemoryProfileStore
from sitecast.build.builder import Builder
from sitecast.config import DeployConfig
from sitecast.core.errors import (
    BuildFailed,
    CredentialMissing,
    DeployError,
    ExtractFailed,
    FetchFailed,
    ManifestOrUploadFailed,
    NoBuildScript,
)
from sitecast.core.hasher import file_content_hash
from sitecast.core.pipeline import DeploymentPipeline
from sitecast.core.run_ledger import RunLedger
from sitecast.models.classification import ProjectKind
from sitecast.models.release import ReleaseStatus
from sitecast.models.source import HostKind, SourceReference

USER_ID = "user-1"
SITE_ID = "acme-prod"


def _leftovers(config: DeployConfig) -> list[Path]:
    scratch = config.resolved_scratch_dir
    return sorted(scratch.iterdir()) if scratch.exists() else []


def _failed_stage(ledger: RunLedger) -> tuple[str, dict]:
    [run_id] = ledger.get_all_run_ids()
    last = ledger.get_run_entries(run_id)[-1]
    assert last.state_transition == "running->failed"
    return last.stage_id, last.details


class TestFullPipeline:
    """End-to-end runs: fetch → extract → build → upload → finalize → release."""

    @pytest.fixture
    def ref(self) -> SourceReference:
        return SourceReference(host_kind=HostKind.GITHUB, owner="acme", repo_name="site", ref="main")

    @pytest.mark.asyncio
    async def test_static_site_end_to_end(self, backend, deploy_config, profile_store, ledger, ref):
        async with backend.client() as http:
            pipeline = DeploymentPipeline(deploy_config, profile_store, http, ledger=ledger)
            result = await pipeline.deploy(USER_ID, ref, SITE_ID)
            final = await pipeline.wait_for_release(USER_ID, SITE_ID, result.release.release_id)

        assert result.classification.kind == ProjectKind.PREBUILT_STATIC
        assert result.classification.publish_dir == "."
        digest = file_content_hash(b"<h1>hi</h1>")
        assert result.manifest.files == {"/index.html": digest}
        assert result.uploaded_hashes == [digest]
        assert backend.uploaded == [digest]
        assert final.status == ReleaseStatus.SUCCESS
        assert final.url == f"https://{SITE_ID}.web.app"
        assert _leftovers(deploy_config) == []

    @pytest.mark.asyncio
    async def test_ledger_records_every_stage(self, backend, deploy_config, profile_store, ledger, ref):
        async with backend.client() as http:
            pipeline = DeploymentPipeline(deploy_config, profile_store, http, ledger=ledger)
            result = await pipeline.deploy(USER_ID, ref, SITE_ID)

        entries = ledger.get_run_entries(result.run_id)
        passed = [e.stage_id for e in entries if e.state_transition == "running->passed"]
        assert passed == ["fetch", "extract", "build", "upload", "finalize", "release"]
        assert ledger.verify_chain(result.run_id)
        assert pipeline.version_handle_of(result.run_id) == result.release.version_handle

    @pytest.mark.asyncio
    async def test_redeploy_uploads_nothing_new(self, backend, deploy_config, profile_store, ref):
        async with backend.client() as http:
            pipeline = DeploymentPipeline(deploy_config, profile_store, http)
            await pipeline.deploy(USER_ID, ref, SITE_ID)
            second = await pipeline.deploy(USER_ID, ref, SITE_ID)
        assert second.uploaded_hashes == []
        assert len(backend.uploaded) == 1

    @pytest.mark.asyncio
    async def test_gitlab_source(self, backend, deploy_config, profile_store):
        ref = SourceReference.parse("acme/site", host_kind=HostKind.GITLAB)
        async with backend.client() as http:
            pipeline = DeploymentPipeline(deploy_config, profile_store, http)
            result = await pipeline.deploy(USER_ID, ref, SITE_ID)
        assert result.release.status == ReleaseStatus.SUCCESS
        assert backend.calls("GET", "gitlab.com")[0].headers["PRIVATE-TOKEN"] == "gl-token"

    @pytest.mark.asyncio
    async def test_buildable_application(self, backend, tarball_factory, deploy_config, profile_store, ref):
        backend.tarball = tarball_factory({
            "package.json": json.dumps(
                {"scripts": {"build": "mkdir -p dist && echo '<p>built</p>' > dist/index.html"}}
            ),
            "src/main.js": "console.log('hi')",
        })
        async with backend.client() as http:
            pipeline = DeploymentPipeline(
                deploy_config, profile_store, http, builder=Builder(install_command="true")
            )
            result = await pipeline.deploy(USER_ID, ref, SITE_ID)
        assert result.classification.kind == ProjectKind.BUILDABLE_APPLICATION
        assert list(result.manifest.files) == ["/index.html"]
        assert _leftovers(deploy_config) == []

    @pytest.mark.asyncio
    async def test_expired_hosting_token_is_refreshed(
        self, backend, deploy_config, profile_store, ref
    ):
        backend.valid_tokens = {"only-after-refresh"}
        async with backend.client() as http:
            pipeline = DeploymentPipeline(deploy_config, profile_store, http)
            result = await pipeline.deploy(USER_ID, ref, SITE_ID)
        assert result.release.status == ReleaseStatus.SUCCESS
        assert backend.refresh_calls == 1
        assert profile_store.get(USER_ID)["googleToken"] == "g-fresh-1"


class TestFailureCleanup:
    """Every injected failure leaves no scratch file or directory behind."""

    @pytest.fixture
    def ref(self) -> SourceReference:
        return SourceReference.parse("acme/site")

    @pytest.mark.asyncio
    async def test_build_script_false(self, backend, tarball_factory, deploy_config, profile_store, ledger, ref):
        backend.tarball = tarball_factory({"package.json": json.dumps({"scripts": {"build": "false"}})})
        async with backend.client() as http:
            pipeline = DeploymentPipeline(
                deploy_config, profile_store, http, ledger=ledger,
                builder=Builder(install_command="true"),
            )
            with pytest.raises(BuildFailed):
                await pipeline.deploy(USER_ID, ref, SITE_ID)

        assert _leftovers(deploy_config) == []
        stage, details = _failed_stage(ledger)
        assert stage == "build"
        assert details["error_type"] == "BuildFailed"
        assert backend.calls("POST", "/versions") == []

    @pytest.mark.asyncio
    async def test_fetch_failure(self, backend, deploy_config, profile_store, ledger, ref):
        backend.fail["fetch"] = 404
        async with backend.client() as http:
            pipeline = DeploymentPipeline(deploy_config, profile_store, http, ledger=ledger)
            with pytest.raises(FetchFailed):
                await pipeline.deploy(USER_ID, ref, SITE_ID)
        assert _leftovers(deploy_config) == []
        assert _failed_stage(ledger)[0] == "fetch"

    @pytest.mark.asyncio
    async def test_extract_failure(self, backend, deploy_config, profile_store, ledger, ref):
        backend.tarball = b"definitely not gzip"
        async with backend.client() as http:
            pipeline = DeploymentPipeline(deploy_config, profile_store, http, ledger=ledger)
            with pytest.raises(ExtractFailed):
                await pipeline.deploy(USER_ID, ref, SITE_ID)
        assert _leftovers(deploy_config) == []
        assert _failed_stage(ledger)[0] == "extract"

    @pytest.mark.asyncio
    async def test_upload_failure(self, backend, deploy_config, profile_store, ledger, ref):
        backend.fail["upload"] = 500
        async with backend.client() as http:
            pipeline = DeploymentPipeline(deploy_config, profile_store, http, ledger=ledger)
            with pytest.raises(ManifestOrUploadFailed):
                await pipeline.deploy(USER_ID, ref, SITE_ID)
        assert _leftovers(deploy_config) == []
        assert _failed_stage(ledger)[0] == "upload"
        assert all(v["status"] != "FINALIZED" for v in backend.versions.values())

    @pytest.mark.asyncio
    async def test_release_failure_keeps_finalized_version(
        self, backend, deploy_config, profile_store, ledger, ref
    ):
        backend.fail["release"] = 503
        async with backend.client() as http:
            pipeline = DeploymentPipeline(deploy_config, profile_store, http, ledger=ledger)
            with pytest.raises(ManifestOrUploadFailed):
                await pipeline.deploy(USER_ID, ref, SITE_ID)

            [run_id] = ledger.get_all_run_ids()
            handle = pipeline.version_handle_of(run_id)
            assert backend.versions[handle]["status"] == "FINALIZED"

            # The finalized version can be released later without a new run.
            del backend.fail["release"]
            record = await pipeline.rerelease(USER_ID, SITE_ID, handle)
        assert record.status == ReleaseStatus.SUCCESS
        assert _leftovers(deploy_config) == []

    @pytest.mark.asyncio
    async def test_run_timeout_kills_build(self, backend, tarball_factory, tmp_dir, profile_store, ref):
        backend.tarball = tarball_factory({"package.json": json.dumps({"scripts": {"build": "sleep 30"}})})
        config = DeployConfig(scratch_dir=tmp_dir / "scratch", run_timeout_seconds=0.5)
        async with backend.client() as http:
            pipeline = DeploymentPipeline(
                config, profile_store, http, builder=Builder(install_command="true")
            )
            with pytest.raises(DeployError, match="exceeded"):
                await pipeline.deploy(USER_ID, ref, SITE_ID)
        assert _leftovers(config) == []

    @pytest.mark.asyncio
    async def test_run_timeout_waits_for_extraction_thread(
        self, backend, tmp_dir, profile_store, ref, monkeypatch
    ):
        finished = threading.Event()

        def slow_extract(archive: Path, dest: Path) -> Path:
            dest.mkdir(parents=True, exist_ok=True)
            time.sleep(1.0)
            (dest / "index.html").write_text("late")
            finished.set()
            return dest

        monkeypatch.setattr("sitecast.core.pipeline.extract_archive", slow_extract)
        config = DeployConfig(scratch_dir=tmp_dir / "scratch", run_timeout_seconds=0.3)
        async with backend.client() as http:
            pipeline = DeploymentPipeline(config, profile_store, http)
            with pytest.raises(DeployError, match="exceeded"):
                await pipeline.deploy(USER_ID, ref, SITE_ID)

        # The extraction thread finished before cleanup, so nothing reappears.
        assert finished.is_set()
        assert _leftovers(config) == []

    @pytest.mark.asyncio
    async def test_inner_timeout_is_not_a_run_timeout(
        self, backend, deploy_config, profile_store, ref, monkeypatch
    ):
        def stalled(archive: Path, dest: Path) -> Path:
            raise TimeoutError("disk stalled")

        monkeypatch.setattr("sitecast.core.pipeline.extract_archive", stalled)
        async with backend.client() as http:
            pipeline = DeploymentPipeline(deploy_config, profile_store, http)
            with pytest.raises(TimeoutError, match="disk stalled"):
                await pipeline.deploy(USER_ID, ref, SITE_ID)
        assert _leftovers(deploy_config) == []

    @pytest.mark.asyncio
    async def test_build_prod_only_has_no_build_script(
        self, backend, tarball_factory, deploy_config, profile_store, ledger, ref
    ):
        backend.tarball = tarball_factory(
            {"package.json": json.dumps({"scripts": {"build:prod": "mkdir -p dist"}})}
        )
        async with backend.client() as http:
            pipeline = DeploymentPipeline(
                deploy_config, profile_store, http, ledger=ledger,
                builder=Builder(install_command="true"),
            )
            with pytest.raises(NoBuildScript):
                await pipeline.deploy(USER_ID, ref, SITE_ID)
        assert _leftovers(deploy_config) == []
        assert _failed_stage(ledger)[0] == "build"

    @pytest.mark.asyncio
    async def test_missing_credentials(self, backend, deploy_config, ref):
        async with backend.client() as http:
            pipeline = DeploymentPipeline(deploy_config, InMemoryProfileStore(), http)
            with pytest.raises(CredentialMissing):
                await pipeline.deploy(USER_ID, ref, SITE_ID)
        assert backend.requests == []
        assert _leftovers(deploy_config) == []
