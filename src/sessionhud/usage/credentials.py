"""OAuth credential lookup.

Credentials live in ``~/.claude/.credentials.json``. On macOS the assistant
may keep them in the login Keychain instead, so that is tried when the
file is missing or has no access token.
"""

from __future__ import annotations

import getpass
import json
import os
import subprocess
import sys
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from sessionhud.config.paths import get_credentials_path
from sessionhud.logging import get_logger

log = get_logger("usage.credentials")

KEYCHAIN_SERVICE = "Claude Code-credentials"
KEYCHAIN_TIMEOUT = 2.0

KeychainReader = Callable[[], dict[str, Any] | None]


@dataclass(frozen=True)
class Credentials:
    access_token: str
    subscription_type: str = ""
    organization_uuid: str | None = None
    rate_limit_tier: str | None = None
    expires_at: float | None = None  # Unix milliseconds


def read_keychain_credentials() -> dict[str, Any] | None:
    """Read the credential blob from the macOS Keychain (None elsewhere)."""
    if sys.platform != "darwin":
        return None

    user = os.environ.get("USER") or getpass.getuser()
    try:
        result = subprocess.run(
            ["security", "find-generic-password", "-a", user, "-s", KEYCHAIN_SERVICE, "-w"],
            capture_output=True,
            text=True,
            timeout=KEYCHAIN_TIMEOUT,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        log.debug("Keychain read failed: %s", e)
        return None

    output = result.stdout.strip()
    if result.returncode != 0 or not output:
        return None
    try:
        data = json.loads(output)
    except json.JSONDecodeError:
        log.debug("Keychain entry is not JSON")
        return None
    log.debug("Read credentials from macOS Keychain")
    return data if isinstance(data, dict) else None


def _read_credentials_file(path: Path) -> dict[str, Any] | None:
    if not path.exists():
        return None
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        log.debug("Failed to read credentials file %s: %s", path, e)
        return None
    return data if isinstance(data, dict) else None


def _oauth_section(data: dict[str, Any] | None) -> dict[str, Any]:
    section = data.get("claudeAiOauth") if data else None
    return section if isinstance(section, dict) else {}


def read_credentials(
    home: Path,
    now: datetime,
    keychain_reader: KeychainReader = read_keychain_credentials,
) -> Credentials | None:
    """Resolve usable credentials, None when logged out or expired.

    The expiry check is inclusive: a token expiring exactly at ``now`` is
    already expired.
    """
    data = _read_credentials_file(get_credentials_path(home))
    if not _oauth_section(data).get("accessToken"):
        data = keychain_reader()

    if not data:
        log.debug("No credentials found in file or Keychain")
        return None

    oauth = _oauth_section(data)
    access_token = oauth.get("accessToken")
    if not isinstance(access_token, str) or not access_token:
        log.debug("No access token in credentials")
        return None

    expires_at = oauth.get("expiresAt")
    if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
        expires_at = None
    if expires_at is not None and expires_at <= now.timestamp() * 1000:
        log.debug("Access token expired at %s", expires_at)
        return None

    account = data.get("oauthAccount")
    organization_uuid = account.get("organizationUuid") if isinstance(account, dict) else None
    subscription_type = oauth.get("subscriptionType")
    rate_limit_tier = oauth.get("rateLimitTier")

    return Credentials(
        access_token=access_token,
        subscription_type=subscription_type if isinstance(subscription_type, str) else "",
        organization_uuid=organization_uuid if isinstance(organization_uuid, str) else None,
        rate_limit_tier=rate_limit_tier if isinstance(rate_limit_tier, str) else None,
        expires_at=expires_at,
    )
