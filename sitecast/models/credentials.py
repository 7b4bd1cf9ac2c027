"""Delegated OAuth credential held in the user-profile store."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class DelegatedCredential(BaseModel):
    """Access/refresh token pair obtained on behalf of a user."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str | None = None

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token)

    def __repr__(self) -> str:
        # Tokens never appear in logs or tracebacks.
        return (
            f"DelegatedCredential(access_token='***', "
            f"refresh_token={'***' if self.refresh_token else None!r})"
        )
