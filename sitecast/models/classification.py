"""Project classification: derived each run, never persisted."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ProjectKind(str, Enum):
    """How the working tree becomes publishable files."""

    PREBUILT_STATIC = "prebuilt_static"
    BUILDABLE_APPLICATION = "buildable_application"


class ProjectClassification(BaseModel):
    """Result of build detection.

    ``publish_dir`` is relative to the working tree (``"."`` for the root)
    and is ``None`` for buildable applications until the build has run.
    ``rule`` names the detection rule that matched.
    """

    model_config = ConfigDict(frozen=True)

    kind: ProjectKind
    publish_dir: str | None = None
    rule: str = ""

    @property
    def needs_build(self) -> bool:
        return self.kind == ProjectKind.BUILDABLE_APPLICATION
