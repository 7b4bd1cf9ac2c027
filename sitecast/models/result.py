"""Outcome of a successful deployment run."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from sitecast.models.classification import ProjectClassification
from sitecast.models.manifest import ContentManifest
from sitecast.models.release import ReleaseRecord
from sitecast.models.source import SourceReference


class DeploymentResult(BaseModel):
    """Everything a caller needs to report on a finished run."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    source: SourceReference
    site_id: str
    classification: ProjectClassification
    manifest: ContentManifest
    uploaded_hashes: list[str] = []
    release: ReleaseRecord
