"""Content manifest: the unit of negotiation with the hosting backend."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator

from sitecast.core.hasher import content_address


class ContentManifest(BaseModel):
    """Mapping of ``/``-prefixed site path to the hash of its gzipped bytes.

    One entry per publishable file. Several paths may share a hash when
    their contents are identical.
    """

    model_config = ConfigDict(frozen=True)

    files: dict[str, str]

    @field_validator("files")
    @classmethod
    def _paths_are_rooted(cls, files: dict[str, str]) -> dict[str, str]:
        for path in files:
            if not path.startswith("/"):
                raise ValueError(f"Manifest path must start with '/': {path!r}")
        return files

    @property
    def hashes(self) -> set[str]:
        """Distinct content hashes in the manifest."""
        return set(self.files.values())

    def paths_for(self, digest: str) -> list[str]:
        """All site paths whose content hashes to *digest*, sorted."""
        return sorted(p for p, h in self.files.items() if h == digest)

    @property
    def manifest_hash(self) -> str:
        """Content address of the manifest itself."""
        return content_address(self.files)

    def __len__(self) -> int:
        return len(self.files)
