"""Shared test fixtures for Sitecast."""

from __future__ import annotations

import hashlib
import io
import json
import re
import tarfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from sitecast.auth.profile_store import InMemoryProfileStore
from sitecast.config import DeployConfig
from sitecast.core.run_ledger import RunLedger

HOSTING_API = "https://firebasehosting.googleapis.com/v1beta1"
UPLOAD_API = "https://upload-firebasehosting.googleapis.com/upload"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

USER_ID = "user-1"


# ---------------------------------------------------------------------------
# Filesystem fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def ledger(tmp_dir: Path) -> RunLedger:
    """Provide a fresh RunLedger backed by a temp SQLite database."""
    return RunLedger(tmp_dir / "test_ledger.db")


def make_tarball(files: dict[str, str | bytes], wrapper: str = "acme-site-1a2b3c4") -> bytes:
    """Gzipped tarball with every file under a single wrapper folder."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        top = tarfile.TarInfo(wrapper)
        top.type = tarfile.DIRTYPE
        top.mode = 0o755
        tar.addfile(top)
        for name, content in files.items():
            data = content.encode() if isinstance(content, str) else content
            info = tarfile.TarInfo(f"{wrapper}/{name}")
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


@pytest.fixture
def tarball_factory() -> Callable[..., bytes]:
    """Build host-style source archives from a ``{path: content}`` mapping."""
    return make_tarball


@pytest.fixture
def write_tree(tmp_dir: Path) -> Callable[[dict[str, str | bytes]], Path]:
    """Materialize a ``{relative path: content}`` mapping as a project tree."""

    def _write(files: dict[str, str | bytes], name: str = "tree") -> Path:
        root = tmp_dir / name
        root.mkdir(parents=True, exist_ok=True)
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content)
        return root

    return _write


# ---------------------------------------------------------------------------
# Credentials and configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def profile_store() -> InMemoryProfileStore:
    """A user with GitHub, GitLab and hosting credentials on file."""
    return InMemoryProfileStore(
        {
            USER_ID: {
                "githubToken": "gh-token",
                "gitlabToken": "gl-token",
                "googleToken": "g-access",
                "googleRefreshToken": "g-refresh",
            }
        }
    )


@pytest.fixture
def deploy_config(tmp_dir: Path) -> DeployConfig:
    """Configuration pointing scratch space into the test directory."""
    return DeployConfig(
        scratch_dir=tmp_dir / "scratch",
        ledger_path=tmp_dir / "ledger.db",
        profile_db_path=tmp_dir / "profiles.db",
        google_client_id="client-id",
        google_client_secret="client-secret",
        build_timeout_seconds=60,
        release_poll_interval_seconds=0.01,
        release_wait_timeout_seconds=1,
    )


# ---------------------------------------------------------------------------
# Fake remote services
# ---------------------------------------------------------------------------


def _json(status: int, body: dict[str, Any]) -> httpx.Response:
    return httpx.Response(status, json=body)


def _google_error(status: int, message: str) -> httpx.Response:
    return _json(status, {"error": {"code": status, "message": message}})


class FakeBackend:
    """In-memory stand-in for the source hosts, token endpoint and hosting API.

    Served through ``httpx.MockTransport``. The hosting side deduplicates
    by the SHA-256 of the gzipped body and verifies every upload.
    """

    def __init__(self, tarball: bytes = b"", known_hashes: set[str] | None = None) -> None:
        self.tarball = tarball
        self.known_hashes: set[str] = set(known_hashes or ())
        self.valid_tokens: set[str] = {"g-access"}
        self.versions: dict[str, dict[str, Any]] = {}
        self.releases: dict[str, dict[str, Any]] = {}
        self.uploaded: list[str] = []
        self.refresh_calls = 0
        self.fail: dict[str, int] = {}  # operation -> status code to answer with
        self.release_complete = True
        self.expire_after_populate = False  # reject the current token once populate answers
        self.requests: list[httpx.Request] = []
        self._seq = 0

    # -- plumbing -----------------------------------------------------------

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def calls(self, method: str, fragment: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and fragment in str(r.url)]

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url.startswith("https://api.github.com/"):
            return self._github(request)
        if url.startswith("https://codeload.github.com/"):
            return httpx.Response(200, content=self.tarball)
        if url.startswith("https://gitlab.com/api/v4/"):
            return self._gitlab(request)
        if url.startswith(GOOGLE_TOKEN_URL):
            return self._token(request)
        if url.startswith(HOSTING_API) or url.startswith(UPLOAD_API):
            auth = request.headers.get("Authorization", "")
            if auth.removeprefix("Bearer ") not in self.valid_tokens:
                return _google_error(401, "Request had invalid authentication credentials.")
            return self._hosting(request)
        return httpx.Response(404, json={"message": "Not Found"})

    # -- source hosts -------------------------------------------------------

    def _github(self, request: httpx.Request) -> httpx.Response:
        if "fetch" in self.fail:
            return _json(self.fail["fetch"], {"message": "Not Found"})
        match = re.match(r"/repos/([^/]+)/([^/]+)/tarball/(.+)", request.url.path)
        if not match:
            return _json(404, {"message": "Not Found"})
        owner, repo, ref = match.groups()
        return httpx.Response(
            302,
            headers={"Location": f"https://codeload.github.com/{owner}/{repo}/legacy.tar.gz/{ref}"},
        )

    def _gitlab(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/repository/archive.tar.gz"):
            return httpx.Response(200, content=self.tarball)
        return _json(200, {"id": 42, "path_with_namespace": "acme/site"})

    # -- token endpoint -----------------------------------------------------

    def _token(self, request: httpx.Request) -> httpx.Response:
        self.refresh_calls += 1
        if "token" in self.fail:
            return _json(self.fail["token"], {"error": "invalid_grant"})
        fresh = f"g-fresh-{self.refresh_calls}"
        self.valid_tokens = {fresh}
        return _json(200, {"access_token": fresh, "expires_in": 3599, "token_type": "Bearer"})

    # -- hosting ------------------------------------------------------------

    def _hosting(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/v1beta1")
        method = request.method

        if method == "POST" and (m := re.fullmatch(r"/sites/([^/]+)/versions", path)):
            if "create_version" in self.fail:
                return _google_error(self.fail["create_version"], "backend unavailable")
            handle = f"sites/{m.group(1)}/versions/v{self._next()}"
            self.versions[handle] = {"name": handle, "status": "CREATED", "files": {}}
            return _json(200, self.versions[handle])

        if method == "POST" and (m := re.fullmatch(r"/(sites/[^/]+/versions/[^/:]+):populateFiles", path)):
            if "populate" in self.fail:
                return _google_error(self.fail["populate"], "populate rejected")
            handle = m.group(1)
            files = json.loads(request.content)["files"]
            self.versions[handle]["files"] = files
            required = sorted({h for h in files.values() if h not in self.known_hashes})
            if self.expire_after_populate:
                self.valid_tokens = set()
            return _json(
                200,
                {"uploadRequiredHashes": required, "uploadUrl": f"{UPLOAD_API}/{handle}/files"},
            )

        if method == "POST" and request.url.path.startswith("/upload/"):
            if "upload" in self.fail:
                return _google_error(self.fail["upload"], "upload exploded")
            digest = request.url.path.rsplit("/", 1)[-1]
            actual = hashlib.sha256(request.content).hexdigest()
            if actual != digest:
                return _google_error(400, f"hash mismatch: {actual} != {digest}")
            self.uploaded.append(digest)
            self.known_hashes.add(digest)
            return httpx.Response(200)

        if (m := re.fullmatch(r"/(sites/[^/]+/versions/[^/:]+)", path)):
            version = self.versions.get(m.group(1))
            if version is None:
                return _google_error(404, "version not found")
            if method == "GET":
                return _json(200, version)
            if method == "PATCH":
                if "finalize" in self.fail:
                    return _google_error(self.fail["finalize"], "finalize failed")
                if version["status"] == "FINALIZED":
                    return _google_error(400, "Version is already finalized.")
                version["status"] = "FINALIZED"
                return _json(200, version)

        if method == "POST" and (m := re.fullmatch(r"/sites/([^/]+)/releases", path)):
            if "release" in self.fail:
                return _google_error(self.fail["release"], "release failed")
            site = m.group(1)
            handle = request.url.params["versionName"]
            if self.versions.get(handle, {}).get("status") != "FINALIZED":
                return _google_error(400, "Version is not finalized.")
            release_name = f"sites/{site}/releases/r{self._next()}"
            doc = {
                "name": release_name,
                "version": {"name": handle, "status": "FINALIZED"},
                "type": "DEPLOY",
            }
            if self.release_complete:
                doc["releaseTime"] = "2026-10-17T12:00:00.123456789Z"
            self.releases[release_name] = doc
            return _json(200, doc)

        if method == "GET" and (m := re.fullmatch(r"/(sites/[^/]+/releases/[^/]+)", path)):
            doc = self.releases.get(m.group(1))
            if "status" in self.fail:
                return _google_error(self.fail["status"], "status unavailable")
            if doc is None:
                return _google_error(404, "release not found")
            return _json(200, doc)

        return _google_error(404, f"no route for {method} {path}")


@pytest.fixture
def backend(tarball_factory: Callable[..., bytes]) -> FakeBackend:
    """Fake remote services serving a plain static site by default."""
    return FakeBackend(tarball=tarball_factory({"index.html": "<h1>hi</h1>"}))
