"""``sitecast credentials PROVIDER``: store delegated tokens for a user.

Writes the token fields the pipeline reads into the local profile store.
Obtaining the tokens (the OAuth handshake) happens elsewhere.
"""

from __future__ import annotations

from enum import Enum

import typer

from sitecast.auth.profile_store import SqliteProfileStore
from sitecast.auth.refresh import github_provider, gitlab_provider, google_provider
from sitecast.cli.runtime import console
from sitecast.config import DeployConfig


class Provider(str, Enum):
    GOOGLE = "google"
    GITHUB = "github"
    GITLAB = "gitlab"


_FACTORIES = {
    Provider.GOOGLE: google_provider,
    Provider.GITHUB: github_provider,
    Provider.GITLAB: gitlab_provider,
}


def credentials_cmd(
    provider: Provider = typer.Argument(..., help="Provider the tokens belong to."),
    user: str = typer.Option(..., "--user", "-u", help="User id to store tokens for."),
    access_token: str = typer.Option(..., "--access-token", help="OAuth access token."),
    refresh_token: str = typer.Option(
        None, "--refresh-token", help="OAuth refresh token, if the provider issues one."
    ),
) -> None:
    """Store a user's access (and refresh) token for a provider."""
    config = DeployConfig()
    oauth = _FACTORIES[provider](config)

    fields = {oauth.access_token_field: access_token}
    if refresh_token:
        fields[oauth.refresh_token_field] = refresh_token

    SqliteProfileStore(config.profile_db_path).update(user, fields)
    console.print(
        f"[green]Stored {provider.value} credentials for {user}[/green] "
        f"[dim]({', '.join(sorted(fields))})[/dim]"
    )
