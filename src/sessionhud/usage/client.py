"""HTTP access to the two usage endpoints.

Both return the decoded JSON body, or None on any failure (non-200 status,
invalid JSON, timeout, network error). Callers never see an exception.
"""

from __future__ import annotations

from typing import Any

import httpx

from sessionhud import __version__
from sessionhud.logging import get_logger

log = get_logger("usage.client")

USAGE_URL = "https://api.anthropic.com/api/oauth/usage"
USAGE_LIMITS_URL = "https://api.claude.ai/api/v1/usage_limits"

OAUTH_BETA = "oauth-2025-04-20"
DEFAULT_TIMEOUT = 5.0
USER_AGENT = f"session-hud/{__version__}"


def _headers(access_token: str, organization_uuid: str | None) -> dict[str, str]:
    headers = {
        "Authorization": f"Bearer {access_token}",
        "User-Agent": USER_AGENT,
    }
    if organization_uuid:
        headers["x-organization-uuid"] = organization_uuid
    return headers


async def _get_json(
    url: str,
    headers: dict[str, str],
    timeout: float,
    transport: httpx.AsyncBaseTransport | None,
) -> dict[str, Any] | None:
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.get(url, headers=headers)
    except httpx.TimeoutException:
        log.debug("Request to %s timed out", url)
        return None
    except httpx.HTTPError as e:
        log.debug("Request to %s failed: %s", url, e)
        return None

    if response.status_code != 200:
        log.debug("%s returned status %d", url, response.status_code)
        return None

    try:
        data = response.json()
    except ValueError as e:
        log.debug("Invalid JSON from %s: %s", url, e)
        return None
    return data if isinstance(data, dict) else None


async def fetch_usage_api(
    access_token: str,
    organization_uuid: str | None = None,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any] | None:
    """GET the OAuth usage endpoint (five-hour and seven-day windows)."""
    headers = _headers(access_token, organization_uuid)
    headers["anthropic-beta"] = OAUTH_BETA
    return await _get_json(USAGE_URL, headers, timeout, transport)


async def fetch_usage_limits(
    access_token: str,
    organization_uuid: str | None = None,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any] | None:
    """GET the usage-limits endpoint (adds model quotas, tier, compaction)."""
    headers = _headers(access_token, organization_uuid)
    headers["Content-Type"] = "application/json"
    return await _get_json(USAGE_LIMITS_URL, headers, timeout, transport)
