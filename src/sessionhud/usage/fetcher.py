"""Usage fetch pipeline: cache, credentials, dual fetch, merge, parse.

``get_usage()`` runs once per statusline render and must never raise or
hang: every failure turns into ``None`` (nothing to show) or a cached
``api_unavailable`` result (show a warning), and every network call carries
its own timeout.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sessionhud.config.paths import get_usage_cache_path
from sessionhud.logging import get_logger
from sessionhud.usage.cache import DEFAULT_FAILURE_TTL, DEFAULT_TTL, UsageCache
from sessionhud.usage.client import DEFAULT_TIMEOUT, fetch_usage_api, fetch_usage_limits
from sessionhud.usage.credentials import (
    KeychainReader,
    read_credentials,
    read_keychain_credentials,
)
from sessionhud.usage.models import UsageData
from sessionhud.usage.parse import (
    format_time_to_reset,
    get_plan_name,
    merge_responses,
    parse_compaction_info,
    parse_model_quotas,
    parse_plan_tier,
    parse_windows,
)

if TYPE_CHECKING:
    from sessionhud.config.schema import UsageConfig

log = get_logger("usage")

FetchFn = Callable[[str, "str | None"], Awaitable["dict[str, Any] | None"]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UsageDeps:
    """Everything get_usage() touches in the outside world."""

    home_dir: Callable[[], Path] = Path.home
    now: Callable[[], datetime] = _utcnow
    fetch_api: FetchFn = fetch_usage_api
    fetch_usage_limits: FetchFn = fetch_usage_limits
    read_keychain: KeychainReader = read_keychain_credentials
    default_plan: str | None = "Pro"
    cache_ttl: float = DEFAULT_TTL
    failure_ttl: float = DEFAULT_FAILURE_TTL

    @classmethod
    def from_config(cls, config: UsageConfig) -> UsageDeps:
        timeout = config.timeout if config.timeout > 0 else DEFAULT_TIMEOUT
        return cls(
            fetch_api=partial(fetch_usage_api, timeout=timeout),
            fetch_usage_limits=partial(fetch_usage_limits, timeout=timeout),
            default_plan=config.default_plan,
            cache_ttl=config.cache_ttl,
            failure_ttl=config.failure_ttl,
        )

    def open_cache(self) -> UsageCache:
        return UsageCache(
            path=get_usage_cache_path(self.home_dir()),
            ttl=self.cache_ttl,
            failure_ttl=self.failure_ttl,
        )


def with_countdowns(data: UsageData, now: datetime) -> UsageData:
    """Recompute the reset countdown strings against ``now``."""
    return replace(
        data,
        five_hour_reset_in=(
            format_time_to_reset(data.five_hour_reset_at, now) if data.five_hour_reset_at else None
        ),
        seven_day_reset_in=(
            format_time_to_reset(data.seven_day_reset_at, now) if data.seven_day_reset_at else None
        ),
    )


async def _settle(awaitable: Awaitable[dict[str, Any] | None], label: str) -> dict[str, Any] | None:
    try:
        return await awaitable
    except Exception as e:
        log.debug("%s fetch failed: %s", label, e)
        return None


async def get_usage(
    deps: UsageDeps | None = None,
    cache: UsageCache | None = None,
) -> UsageData | None:
    """Return usage data for the logged-in account.

    Returns:
        None for logged-out, expired, or pay-per-token accounts (and on any
        unexpected error). A result with ``api_unavailable=True`` when the
        account has a plan but both endpoints failed.
    """
    deps = deps or UsageDeps()
    try:
        now = deps.now()
        cache = cache or deps.open_cache()

        cached = cache.read(now)
        if cached is not None:
            return with_countdowns(cached, now)

        # File and Keychain reads block; keep them off the event loop
        credentials = await asyncio.to_thread(
            read_credentials, deps.home_dir(), now, deps.read_keychain
        )
        if credentials is None:
            return None

        plan_name = get_plan_name(
            credentials.subscription_type, has_oauth_token=True, default_plan=deps.default_plan
        )
        if plan_name is None:
            log.debug("No plan name determined, likely an API account")
            return None

        token = credentials.access_token
        org = credentials.organization_uuid
        legacy, enhanced = await asyncio.gather(
            _settle(deps.fetch_api(token, org), "usage"),
            _settle(deps.fetch_usage_limits(token, org), "usage_limits"),
        )

        merged = merge_responses(legacy, enhanced)
        if merged is None:
            failure = UsageData(plan_name=plan_name, api_unavailable=True)
            cache.write(failure, now)
            return failure

        five_hour, seven_day, five_hour_reset_at, seven_day_reset_at = parse_windows(merged)
        quotas = parse_model_quotas(merged.get("model_quotas"))
        tier = parse_plan_tier(
            merged.get("max_plan_type"),
            merged.get("tokens_per_window"),
            credentials.rate_limit_tier,
        )
        compaction = parse_compaction_info(merged.get("compaction_buffer"))

        result = with_countdowns(
            UsageData(
                plan_name=plan_name,
                five_hour=five_hour,
                seven_day=seven_day,
                five_hour_reset_at=five_hour_reset_at,
                seven_day_reset_at=seven_day_reset_at,
                model_quotas=tuple(quotas),
                plan_tier=tier if tier.is_active else None,
                compaction=compaction if compaction.is_configured else None,
                organization_uuid=org,
            ),
            now,
        )
        cache.write(result, now)
        return result
    except Exception as e:
        log.debug("get_usage failed: %s", e)
        return None
