"""Sitecast data models: all Pydantic v2, all frozen (immutable)."""

from sitecast.models.classification import ProjectClassification, ProjectKind
from sitecast.models.credentials import DelegatedCredential
from sitecast.models.ledger import LedgerEntry
from sitecast.models.manifest import ContentManifest
from sitecast.models.release import ReleaseRecord, ReleaseStatus
from sitecast.models.result import DeploymentResult
from sitecast.models.source import HostKind, SourceReference
from sitecast.models.stages import (
    STAGE_ORDER,
    VALID_TRANSITIONS,
    DeployStage,
    StageState,
)

__all__ = [
    # source
    "HostKind",
    "SourceReference",
    # classification
    "ProjectKind",
    "ProjectClassification",
    # manifest
    "ContentManifest",
    # release
    "ReleaseStatus",
    "ReleaseRecord",
    # credentials
    "DelegatedCredential",
    # stages
    "DeployStage",
    "StageState",
    "STAGE_ORDER",
    "VALID_TRANSITIONS",
    # ledger
    "LedgerEntry",
    # result
    "DeploymentResult",
]
