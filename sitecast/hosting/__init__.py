"""Hosting backend: manifest, differential upload, finalize, release, status."""

from sitecast.hosting.client import HostingClient
from sitecast.hosting.manifest import ManifestBuild, build_manifest
from sitecast.hosting.status import StatusReporter
from sitecast.hosting.uploader import DifferentialUploader

__all__ = [
    "HostingClient",
    "ManifestBuild",
    "build_manifest",
    "StatusReporter",
    "DifferentialUploader",
]
