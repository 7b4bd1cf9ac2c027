"""Deployment configuration: env-driven.

Centralized config using pydantic-settings. Reads from a .env file and
SITECAST_* environment variables.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class DeployConfig(BaseSettings):
    """Deployment pipeline configuration with environment variable overrides.

    All settings can be overridden via SITECAST_* environment variables
    or a .env file in the working directory.

    Examples
    --------
    Override via environment::

        export SITECAST_LOG_LEVEL=DEBUG
        export SITECAST_SCRATCH_DIR=/var/tmp/sitecast
        export SITECAST_GOOGLE_CLIENT_ID=...apps.googleusercontent.com

    Or via .env file::

        SITECAST_ENVIRONMENT=production
        SITECAST_UPLOAD_CONCURRENCY=32
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SITECAST_",
        env_file_encoding="utf-8",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Local state
    scratch_dir: Path | None = None  # None -> system temp dir
    ledger_path: Path = Path(".sitecast/ledger.db")
    profile_db_path: Path = Path(".sitecast/profiles.db")

    # Source-control hosts
    github_api_url: str = "https://api.github.com"
    gitlab_api_url: str = "https://gitlab.com/api/v4"

    # Hosting backend
    hosting_api_url: str = "https://firebasehosting.googleapis.com/v1beta1"
    site_url_template: str = "https://{site_id}.web.app"
    cache_max_age_seconds: int = 3600

    # OAuth token endpoints: client credentials for refresh-token exchange
    google_token_url: str = "https://oauth2.googleapis.com/token"
    google_client_id: str = ""
    google_client_secret: str = ""
    gitlab_token_url: str = "https://gitlab.com/oauth/token"
    gitlab_client_id: str = ""
    gitlab_client_secret: str = ""

    # Timeouts and limits
    http_timeout_seconds: float = 60.0
    build_install_command: str | None = None  # override lockfile detection
    build_output_limit_bytes: int = 10 * 1024 * 1024
    build_timeout_seconds: float | None = 900.0
    upload_concurrency: int = 16
    upload_timeout_seconds: float | None = 300.0
    run_timeout_seconds: float | None = None

    # Release polling
    release_poll_interval_seconds: float = 2.0
    release_wait_timeout_seconds: float = 120.0

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"

    @property
    def resolved_scratch_dir(self) -> Path:
        """Scratch directory for archives and working trees."""
        return self.scratch_dir or Path(tempfile.gettempdir())


# Module-level singleton: import as `from sitecast.config import config`
config = DeployConfig()
