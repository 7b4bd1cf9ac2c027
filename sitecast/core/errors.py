"""Typed failures of the deployment pipeline.

Each variant is raised at the point of failure (HTTP status inspection,
process exit codes, filesystem errors) so callers can pick a remediation
without inspecting message text:

- ``reconnect``: the user must re-link the provider account.
- ``fix-build``: the repository itself is broken or misconfigured.
- ``retry``: transient network or backend trouble; start the run over.
"""

from __future__ import annotations


class DeployError(RuntimeError):
    """Base class for every pipeline failure."""

    remediation: str = "retry"


class CredentialMissing(DeployError):
    """The user has never connected the provider (no access token on file)."""

    remediation = "reconnect"


class ReauthenticationRequired(DeployError):
    """The delegated credential expired and cannot be refreshed.

    Terminal: surfaced to the end user as "reconnect your account".
    """

    remediation = "reconnect"
    needs_auth = True


class RemoteCallError(DeployError):
    """A remote API answered with a non-success status or was unreachable.

    Parameters
    ----------
    message:
        Human-readable description, usually the backend's error message.
    status_code:
        HTTP status code, or ``None`` for transport-level failures.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"status_code={self.status_code!r})"
        )


class FetchFailed(RemoteCallError):
    """Network or host error while retrieving the source archive."""


class ManifestOrUploadFailed(RemoteCallError):
    """Populate, upload, finalize or release call failed."""


class StatusUnavailable(RemoteCallError):
    """The release state could not be read from the hosting backend."""


class ExtractFailed(DeployError):
    """The source archive could not be unpacked."""

    remediation = "fix-build"


class NoBuildScript(DeployError):
    """Classified as buildable but package.json defines no build script."""

    remediation = "fix-build"


class BuildFailed(DeployError):
    """Dependency installation or the build script exited non-zero.

    ``output`` holds the (possibly truncated) tail of the tool's output.
    """

    remediation = "fix-build"

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class ReleaseTimedOut(DeployError):
    """A release did not report completion within the caller's deadline."""
