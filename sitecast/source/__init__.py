"""Source retrieval: archive download and extraction."""

from sitecast.source.extractor import extract_archive
from sitecast.source.fetcher import archive_url, auth_headers, fetch_archive

__all__ = ["archive_url", "auth_headers", "extract_archive", "fetch_archive"]
