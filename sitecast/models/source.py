"""Source reference models: what a deployment run fetches."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class HostKind(str, Enum):
    """Supported source-control hosts."""

    GITHUB = "github"
    GITLAB = "gitlab"


class SourceReference(BaseModel):
    """Identifies a repository snapshot. Immutable once a run starts."""

    model_config = ConfigDict(frozen=True)

    host_kind: HostKind
    owner: str
    repo_name: str
    ref: str = "main"

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo_name}"

    @classmethod
    def parse(
        cls, slug: str, *, host_kind: HostKind = HostKind.GITHUB, ref: str = "main"
    ) -> SourceReference:
        """Build a reference from an ``owner/repo`` string."""
        owner, sep, repo_name = slug.strip().strip("/").partition("/")
        if not sep or not owner or not repo_name or "/" in repo_name:
            raise ValueError(f"Expected 'owner/repo', got {slug!r}")
        return cls(host_kind=host_kind, owner=owner, repo_name=repo_name, ref=ref)
