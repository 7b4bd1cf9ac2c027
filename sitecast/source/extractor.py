"""Archive extractor: unpack a source tarball into a working tree.

Host archives wrap the repository in one synthetic top-level folder named
after the commit (``acme-site-1a2b3c4/``). Exactly one leading path
component is stripped from every member.
"""

from __future__ import annotations

import logging
import tarfile
from collections.abc import Iterator
from pathlib import Path, PurePosixPath

from sitecast.core.errors import ExtractFailed
from sitecast.core.scratch import remove_path

logger = logging.getLogger(__name__)


def _strip_first(name: str) -> str:
    parts = PurePosixPath(name).parts
    return str(PurePosixPath(*parts[1:])) if len(parts) > 1 else ""


def _stripped_members(archive: tarfile.TarFile) -> Iterator[tarfile.TarInfo]:
    for member in archive.getmembers():
        stripped = _strip_first(member.name)
        if not stripped:
            # The wrapper folder itself (or a bare top-level entry).
            continue
        if member.islnk():
            # Hard-link targets are archive member names and carry the wrapper too.
            member = member.replace(
                name=stripped, linkname=_strip_first(member.linkname), deep=False
            )
        else:
            member = member.replace(name=stripped, deep=False)
        yield member


def extract_archive(archive_path: Path, dest_dir: Path) -> Path:
    """Unpack *archive_path* into *dest_dir*, dropping the wrapper folder.

    Deletes the archive after a successful extraction (best effort). On
    failure, *dest_dir* is removed and ``ExtractFailed`` is raised.
    """
    archive_path = Path(archive_path)
    dest_dir = Path(dest_dir)
    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
        with tarfile.open(archive_path, mode="r:*") as archive:
            archive.extractall(
                dest_dir, members=_stripped_members(archive), filter="data"
            )
    except (tarfile.TarError, OSError, EOFError) as exc:
        remove_path(dest_dir)
        raise ExtractFailed(f"Failed to extract {archive_path.name}: {exc}") from exc
    except BaseException:
        remove_path(dest_dir)
        raise

    try:
        archive_path.unlink()
    except OSError as exc:
        logger.warning("Failed to delete archive %s after extraction: %s", archive_path, exc)

    logger.info("Extracted %s into %s", archive_path.name, dest_dir)
    return dest_dir
