"""Delegated-credential refresh wrapper.

Every remote call in the pipeline runs through ``CredentialBroker.with_refresh``:

    1. Load the user's access token (``CredentialMissing`` if never connected).
    2. Invoke the call with it.
    3. On an authentication failure, exchange the refresh token for a new
       access token once, persist it, and retry the call once.

Refreshes for the same user are serialized behind a per-user lock so two
overlapping runs never spend the same refresh token twice. A waiter that
finds the stored token already rotated simply reuses it.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx

from sitecast.auth.profile_store import ProfileStore
from sitecast.config import DeployConfig
from sitecast.core.errors import (
    CredentialMissing,
    ReauthenticationRequired,
    RemoteCallError,
)
from sitecast.core.http import error_message
from sitecast.models.credentials import DelegatedCredential

logger = logging.getLogger(__name__)

T = TypeVar("T")

# One refresh lock per (provider, user) for the whole process, shared by every
# broker. Entries drop out once no caller holds the lock.
_REFRESH_LOCKS: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = (
    weakref.WeakValueDictionary()
)

# Lower-case phrases providers use for expired or revoked credentials.
EXPIRY_PHRASES: tuple[str, ...] = (
    "invalid_token",
    "expired_token",
    "token_expired",
    "unauthorized",
    "authentication required",
    "invalid_grant",
    "invalid authentication credentials",
    "invalid authentication",
    "authentication credential",
)


def is_auth_failure(status_code: int | None, message: str = "") -> bool:
    """Classify a failed call as an authentication failure.

    Status code is checked first (401 and 403), then the message text.
    """
    if status_code in (401, 403):
        return True
    lowered = (message or "").lower()
    return any(phrase in lowered for phrase in EXPIRY_PHRASES)


@dataclass(frozen=True)
class OAuthProvider:
    """Where a provider's tokens live in the profile, and how to refresh them."""

    name: str
    access_token_field: str
    refresh_token_field: str
    token_url: str = ""
    client_id: str = ""
    client_secret: str = ""


def google_provider(config: DeployConfig) -> OAuthProvider:
    """Hosting backend credentials."""
    return OAuthProvider(
        name="google",
        access_token_field="googleToken",
        refresh_token_field="googleRefreshToken",
        token_url=config.google_token_url,
        client_id=config.google_client_id,
        client_secret=config.google_client_secret,
    )


def github_provider(config: DeployConfig) -> OAuthProvider:
    """GitHub OAuth-app tokens do not expire and carry no refresh token."""
    return OAuthProvider(
        name="github",
        access_token_field="githubToken",
        refresh_token_field="githubRefreshToken",
    )


def gitlab_provider(config: DeployConfig) -> OAuthProvider:
    return OAuthProvider(
        name="gitlab",
        access_token_field="gitlabToken",
        refresh_token_field="gitlabRefreshToken",
        token_url=config.gitlab_token_url,
        client_id=config.gitlab_client_id,
        client_secret=config.gitlab_client_secret,
    )


class CredentialBroker:
    """Loads, refreshes and persists one provider's delegated credentials.

    Parameters
    ----------
    store:
        The user-profile store holding the tokens.
    provider:
        Field names and token endpoint for the provider.
    http:
        Shared async HTTP client used for the token exchange.
    """

    def __init__(
        self,
        store: ProfileStore,
        provider: OAuthProvider,
        http: httpx.AsyncClient,
    ) -> None:
        self._store = store
        self._provider = provider
        self._http = http

    @property
    def provider(self) -> OAuthProvider:
        return self._provider

    def load(self, user_id: str) -> DelegatedCredential:
        """Read the current credential for *user_id* from the store."""
        profile = self._store.get(user_id)
        access_token = (profile or {}).get(self._provider.access_token_field)
        if not access_token:
            raise CredentialMissing(
                f"{self._provider.name} account not connected for user {user_id!r}"
            )
        return DelegatedCredential(
            access_token=access_token,
            refresh_token=profile.get(self._provider.refresh_token_field) or None,
        )

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        key = (self._provider.name, user_id)
        lock = _REFRESH_LOCKS.get(key)
        if lock is None:
            lock = _REFRESH_LOCKS[key] = asyncio.Lock()
        return lock

    async def with_refresh(
        self, user_id: str, fn: Callable[[str], Awaitable[T]]
    ) -> T:
        """Run ``fn(access_token)``, refreshing and retrying once on auth failure."""
        credential = self.load(user_id)
        try:
            return await fn(credential.access_token)
        except RemoteCallError as exc:
            if not is_auth_failure(exc.status_code, exc.message):
                raise
            if not credential.can_refresh:
                raise ReauthenticationRequired(
                    f"{self._provider.name} token expired and no refresh token "
                    f"is available. Please reconnect your account."
                ) from exc
            logger.info(
                "%s credential rejected for user %s (%s); refreshing",
                self._provider.name,
                user_id,
                exc.status_code,
            )

        fresh_token = await self.refresh(user_id, stale_token=credential.access_token)
        # At most one refresh per call: a second failure propagates unchanged.
        return await fn(fresh_token)

    async def refresh(self, user_id: str, *, stale_token: str | None = None) -> str:
        """Exchange the stored refresh token for a new access token.

        Serialized per user. If another caller already rotated the token
        while we waited, the stored token is returned without a network call.
        """
        async with self._lock_for(user_id):
            credential = self.load(user_id)
            if stale_token is not None and credential.access_token != stale_token:
                logger.debug(
                    "%s credential for %s already refreshed by a concurrent run",
                    self._provider.name,
                    user_id,
                )
                return credential.access_token
            if not credential.refresh_token:
                raise ReauthenticationRequired(
                    f"No {self._provider.name} refresh token on file. "
                    f"Please reconnect your account."
                )
            return await self._exchange(user_id, credential.refresh_token)

    async def _exchange(self, user_id: str, refresh_token: str) -> str:
        provider = self._provider
        if not provider.token_url or not provider.client_id:
            raise ReauthenticationRequired(
                f"{provider.name} OAuth client is not configured; cannot refresh. "
                f"Please reconnect your account."
            )

        try:
            response = await self._http.post(
                provider.token_url,
                data={
                    "client_id": provider.client_id,
                    "client_secret": provider.client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
                headers={"Accept": "application/json"},
            )
        except httpx.TransportError as exc:
            raise RemoteCallError(
                f"{provider.name} token endpoint unreachable: {exc}"
            ) from exc

        if not response.is_success:
            message = error_message(response)
            if response.status_code in (400, 401) or is_auth_failure(
                response.status_code, message
            ):
                raise ReauthenticationRequired(
                    f"{provider.name} refresh rejected ({message}). "
                    f"Please reconnect your account."
                )
            raise RemoteCallError(
                f"Failed to refresh {provider.name} access token: {message}",
                status_code=response.status_code,
            )

        token_data = response.json()
        if token_data.get("error"):
            raise ReauthenticationRequired(
                token_data.get("error_description") or token_data["error"]
            )
        access_token = token_data.get("access_token")
        if not access_token:
            raise RemoteCallError(
                f"No access token received from {provider.name} refresh",
                status_code=response.status_code,
            )

        updates = {provider.access_token_field: access_token}
        if token_data.get("refresh_token"):
            updates[provider.refresh_token_field] = token_data["refresh_token"]
        self._store.update(user_id, updates)
        logger.info("Refreshed %s access token for user %s", provider.name, user_id)
        return access_token
