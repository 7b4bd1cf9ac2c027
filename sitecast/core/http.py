"""HTTP response inspection shared by every remote client.

Typed errors are produced here, from the status code and the backend's
error body, so nothing downstream has to sniff exception messages.
"""

from __future__ import annotations

import json
import logging

import httpx

from sitecast.core.errors import RemoteCallError

logger = logging.getLogger(__name__)


def error_message(response: httpx.Response) -> str:
    """Best-effort extraction of a provider's error message.

    Understands the shapes used by Google APIs (``error.message``), OAuth
    token endpoints (``error_description`` / ``error``), GitLab
    (``message``) and GitHub (``message``). Falls back to the reason phrase.
    """
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        text = response.text.strip()
        return text[:500] or response.reason_phrase or f"HTTP {response.status_code}"

    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        for key in ("error_description", "message"):
            if data.get(key):
                return str(data[key])
        if isinstance(err, str) and err:
            return err
    return response.reason_phrase or f"HTTP {response.status_code}"


async def raise_for_status(
    response: httpx.Response,
    action: str,
    error_cls: type[RemoteCallError] = RemoteCallError,
) -> None:
    """Raise *error_cls* if *response* is not 2xx.

    Works for streamed responses too: the body is read before parsing.
    """
    if response.is_success:
        return
    await response.aread()
    message = error_message(response)
    logger.debug("%s failed: HTTP %d %s", action, response.status_code, message)
    raise error_cls(f"{action}: {message}", status_code=response.status_code)
