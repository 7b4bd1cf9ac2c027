"""Tests for deployment config: env-driven settings."""

from __future__ import annotations

import tempfile
from pathlib import Path

from sitecast.config import DeployConfig


class TestDeployConfig:
    def test_defaults(self):
        config = DeployConfig()
        assert config.environment == "development"
        assert config.log_level == "INFO"
        assert config.upload_concurrency == 16
        assert config.cache_max_age_seconds == 3600

    def test_is_production_false_by_default(self):
        assert DeployConfig().is_production is False

    def test_is_production_when_set(self):
        assert DeployConfig(environment="production").is_production is True

    def test_default_paths(self):
        config = DeployConfig()
        assert config.ledger_path == Path(".sitecast/ledger.db")
        assert config.profile_db_path == Path(".sitecast/profiles.db")

    def test_scratch_dir_falls_back_to_temp(self):
        assert DeployConfig().resolved_scratch_dir == Path(tempfile.gettempdir())

    def test_scratch_dir_override(self, tmp_path: Path):
        assert DeployConfig(scratch_dir=tmp_path).resolved_scratch_dir == tmp_path

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("SITECAST_UPLOAD_CONCURRENCY", "4")
        monkeypatch.setenv("SITECAST_SITE_URL_TEMPLATE", "https://{site_id}.example.test")
        config = DeployConfig()
        assert config.upload_concurrency == 4
        assert config.site_url_template.format(site_id="x") == "https://x.example.test"

    def test_site_url_template_default(self):
        assert DeployConfig().site_url_template.format(site_id="acme") == "https://acme.web.app"
