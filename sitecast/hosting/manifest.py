"""Content manifest construction.

Walks the publish directory, hashes each regular file over its gzipped
bytes, and keeps the raw bytes so required files can be re-compressed for
upload without touching the disk again.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from sitecast.core.hasher import file_content_hash
from sitecast.models.manifest import ContentManifest

logger = logging.getLogger(__name__)


@dataclass
class ManifestBuild:
    """A manifest plus the raw bytes it was computed from."""

    manifest: ContentManifest
    contents: dict[str, bytes] = field(default_factory=dict, repr=False)

    def content_for_hash(self, digest: str) -> bytes | None:
        """Raw bytes of any file whose content hashes to *digest*."""
        for path in self.manifest.paths_for(digest):
            return self.contents[path]
        return None

    @property
    def total_bytes(self) -> int:
        return sum(len(b) for b in self.contents.values())


def iter_site_files(publish_dir: Path) -> list[tuple[str, Path]]:
    """Sorted ``(site_path, absolute_path)`` pairs for every regular file.

    Symlinks are skipped, both for files and directories.
    """
    root = Path(publish_dir)
    found: list[tuple[str, Path]] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        base = Path(dirpath)
        for name in sorted(filenames):
            path = base / name
            if path.is_symlink() or not path.is_file():
                continue
            site_path = "/" + path.relative_to(root).as_posix()
            found.append((site_path, path))
    found.sort(key=lambda pair: pair[0])
    return found


def build_manifest(publish_dir: Path) -> ManifestBuild:
    """Hash every publishable file under *publish_dir*."""
    files: dict[str, str] = {}
    contents: dict[str, bytes] = {}
    for site_path, path in iter_site_files(publish_dir):
        data = path.read_bytes()
        contents[site_path] = data
        files[site_path] = file_content_hash(data)
        logger.debug("manifest %s -> %s", site_path, files[site_path][:12])

    build = ManifestBuild(manifest=ContentManifest(files=files), contents=contents)
    logger.info(
        "Manifest: %d files, %d distinct, %d bytes",
        len(files),
        len(build.manifest.hashes),
        build.total_bytes,
    )
    return build
