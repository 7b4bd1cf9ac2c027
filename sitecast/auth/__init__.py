"""Delegated credentials: profile store access and the refresh wrapper."""

from sitecast.auth.profile_store import (
    InMemoryProfileStore,
    ProfileStore,
    SqliteProfileStore,
)
from sitecast.auth.refresh import (
    CredentialBroker,
    OAuthProvider,
    github_provider,
    gitlab_provider,
    google_provider,
    is_auth_failure,
)

__all__ = [
    "ProfileStore",
    "InMemoryProfileStore",
    "SqliteProfileStore",
    "CredentialBroker",
    "OAuthProvider",
    "github_provider",
    "gitlab_provider",
    "google_provider",
    "is_auth_failure",
]
