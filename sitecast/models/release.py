"""Release records: created by the finalizer, read by the status reporter."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ReleaseStatus(str, Enum):
    """Release lifecycle as observable through the hosting backend.

    ``FAILED`` exists for completeness; the backend exposes no failure
    signal, so the reporter only ever yields IN_PROGRESS or SUCCESS.
    """

    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"


class ReleaseRecord(BaseModel):
    """A release of a finalized version on a hosting site."""

    model_config = ConfigDict(frozen=True)

    release_id: str
    site_id: str
    version_handle: str
    status: ReleaseStatus = ReleaseStatus.IN_PROGRESS
    url: str
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (ReleaseStatus.SUCCESS, ReleaseStatus.FAILED)
