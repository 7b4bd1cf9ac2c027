"""Sitecast: repository-to-static-site deployment pipeline.

Fetches a repository snapshot from GitHub or GitLab, builds it when it needs
building, and publishes the result to a static hosting backend with
content-addressed, differential uploads:
  - Delegated OAuth credentials with single refresh-and-retry
  - Deterministic gzip manifests, only missing hashes uploaded
  - Idempotent finalize; releases re-issuable against a finalized version
  - Append-only, hash-chained Run Ledger of every stage transition
"""

__version__ = "0.1.0"

from sitecast.core.pipeline import DeploymentPipeline

__all__ = ["DeploymentPipeline", "__version__"]
