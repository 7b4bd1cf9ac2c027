"""Deployment status reporter.

Reads a release back from the hosting backend. The backend only tells us
whether a release has taken effect (``releaseTime`` present): there is no
failure signal, so a release that never completes must be escalated by the
caller's deadline (``wait_for_release``), never reported as FAILED here.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from datetime import datetime, timezone
from typing import Any

from sitecast.auth.refresh import CredentialBroker
from sitecast.core.errors import ReleaseTimedOut
from sitecast.hosting.client import HostingClient
from sitecast.models.release import ReleaseRecord, ReleaseStatus

logger = logging.getLogger(__name__)

DEFAULT_SITE_URL = "https://{site_id}.web.app"

_FRACTION = re.compile(r"(\.\d{6})\d+")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an RFC 3339 timestamp (nanosecond precision allowed)."""
    if not value or not isinstance(value, str):
        return None
    text = _FRACTION.sub(r"\1", value.strip())
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Unparseable timestamp %r", value)
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def release_record_from(
    data: dict[str, Any],
    *,
    site_id: str,
    version_handle: str = "",
    release_id: str = "",
    site_url_template: str = DEFAULT_SITE_URL,
) -> ReleaseRecord:
    """Map a backend release document to a ReleaseRecord."""
    released_at = parse_timestamp(data.get("releaseTime"))
    version = data.get("version")
    backend_version = (
        version.get("name") if isinstance(version, dict) else data.get("versionName")
    )
    return ReleaseRecord(
        release_id=release_id or str(data.get("name", "")).rsplit("/", 1)[-1],
        site_id=site_id,
        version_handle=backend_version or version_handle,
        status=ReleaseStatus.SUCCESS if released_at else ReleaseStatus.IN_PROGRESS,
        url=site_url_template.format(site_id=site_id),
        created_at=parse_timestamp(data.get("createTime")) or datetime.now(timezone.utc),
        completed_at=released_at,
    )


class StatusReporter:
    """Read-only view of releases, through the credential refresh wrapper."""

    def __init__(
        self,
        client: HostingClient,
        broker: CredentialBroker,
        *,
        site_url_template: str = DEFAULT_SITE_URL,
    ) -> None:
        self._client = client
        self._broker = broker
        self._site_url_template = site_url_template

    async def status(self, user_id: str, site_id: str, release_id: str) -> ReleaseRecord:
        data = await self._broker.with_refresh(
            user_id,
            lambda token: self._client.get_release(token, site_id, release_id),
        )
        return release_record_from(
            data,
            site_id=site_id,
            release_id=release_id,
            site_url_template=self._site_url_template,
        )

    async def wait_for_release(
        self,
        user_id: str,
        site_id: str,
        release_id: str,
        *,
        timeout: float = 120.0,
        interval: float = 2.0,
    ) -> ReleaseRecord:
        """Poll until the release reports SUCCESS.

        Raises ``ReleaseTimedOut`` once *timeout* seconds pass without a
        terminal state; that is the only way a stuck release surfaces.
        """
        deadline = time.monotonic() + timeout
        while True:
            record = await self.status(user_id, site_id, release_id)
            if record.is_terminal:
                return record
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ReleaseTimedOut(
                    f"Release {release_id} on {site_id} still in progress after {timeout}s"
                )
            logger.debug("Release %s in progress; polling again", release_id)
            await asyncio.sleep(min(interval, remaining))
