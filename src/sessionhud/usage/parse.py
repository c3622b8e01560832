"""Parsing and merging of usage API responses."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from sessionhud.logging import get_logger
from sessionhud.models import parse_timestamp
from sessionhud.usage.models import (
    TIER_MAX5,
    TIER_MAX20,
    CompactionInfo,
    ModelQuota,
    PlanTierInfo,
)

log = get_logger("usage")

MAX20_TOKENS_PER_WINDOW = 220_000
MAX5_TOKENS_PER_WINDOW = 88_000

DEFAULT_COMPACTION_PERCENT = 80

# Response fields, in the order they are merged
MERGED_FIELDS = (
    "five_hour",
    "seven_day",
    "model_quotas",
    "max_plan_type",
    "compaction_buffer",
    "tokens_per_window",
)


def _finite(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def parse_utilization(value: Any) -> int | None:
    """Clamp a utilization to 0..100 as an integer.

    None, non-numbers, NaN and infinities give None, never 0.
    """
    number = _finite(value)
    if number is None:
        return None
    return _round_half_up(max(0.0, min(100.0, number)))


def parse_date(value: Any) -> datetime | None:
    """Parse an ISO timestamp; invalid input gives None."""
    if not isinstance(value, str):
        return None
    parsed = parse_timestamp(value)
    if parsed is None and value:
        log.debug("Invalid date string: %r", value)
    return parsed


def merge_responses(
    primary: dict[str, Any] | None,
    secondary: dict[str, Any] | None,
) -> dict[str, Any] | None:
    """Field by field, take the primary (legacy endpoint) value when present.

    Returns None only when both responses are missing.
    """
    if primary is None and secondary is None:
        return None
    if primary is None:
        return secondary
    if secondary is None:
        return primary

    merged: dict[str, Any] = {}
    for key in MERGED_FIELDS:
        value = primary.get(key)
        merged[key] = value if value is not None else secondary.get(key)
    return merged


def _window(response: dict[str, Any], key: str) -> dict[str, Any]:
    window = response.get(key)
    return window if isinstance(window, dict) else {}


def parse_windows(
    response: dict[str, Any],
) -> tuple[int | None, int | None, datetime | None, datetime | None]:
    """Utilization and reset time of the five-hour and seven-day windows."""
    five = _window(response, "five_hour")
    seven = _window(response, "seven_day")
    return (
        parse_utilization(five.get("utilization")),
        parse_utilization(seven.get("utilization")),
        parse_date(five.get("resets_at")),
        parse_date(seven.get("resets_at")),
    )


def _optional_int(value: Any) -> int | None:
    number = _finite(value)
    return int(number) if number is not None else None


def parse_model_quotas(quotas: Any) -> list[ModelQuota]:
    """Map the per-model quota array, filling placeholder ids and names."""
    if not isinstance(quotas, list):
        return []
    result = []
    for q in quotas:
        if not isinstance(q, dict):
            continue
        model_id = q.get("model_id")
        display_name = q.get("display_name")
        result.append(
            ModelQuota(
                model_id=model_id if isinstance(model_id, str) else "unknown",
                display_name=(
                    display_name
                    if isinstance(display_name, str)
                    else model_id if isinstance(model_id, str) else "Unknown Model"
                ),
                utilization=parse_utilization(q.get("utilization")),
                weekly_hours_used=_finite(q.get("weekly_hours_used")),
                weekly_hours_limit=_finite(q.get("weekly_hours_limit")),
                tokens_used=_optional_int(q.get("tokens_used")),
                tokens_limit=_optional_int(q.get("tokens_limit")),
                resets_at=parse_date(q.get("resets_at")),
            )
        )
    return result


def parse_plan_tier(
    max_plan_type: Any,
    tokens_per_window: Any,
    rate_limit_tier: str | None,
) -> PlanTierInfo:
    """Resolve the plan tier.

    The server's ``max_plan_type`` wins, and an explicit
    ``tokens_per_window`` overrides the tier default. Otherwise the
    credentials' rate-limit tier hint is used with fixed defaults.
    """
    explicit_tokens = _optional_int(tokens_per_window)

    if isinstance(max_plan_type, str) and max_plan_type:
        lower = max_plan_type.lower()
        if "max20" in lower or lower == "20":
            return PlanTierInfo(TIER_MAX20, explicit_tokens or MAX20_TOKENS_PER_WINDOW)
        if "max5" in lower or lower == "5":
            return PlanTierInfo(TIER_MAX5, explicit_tokens or MAX5_TOKENS_PER_WINDOW)

    if rate_limit_tier:
        lower = rate_limit_tier.lower()
        if "max20" in lower or "tier_20" in lower:
            return PlanTierInfo(TIER_MAX20, MAX20_TOKENS_PER_WINDOW)
        if "max5" in lower or "tier_5" in lower:
            return PlanTierInfo(TIER_MAX5, MAX5_TOKENS_PER_WINDOW)

    return PlanTierInfo(None, None)


def parse_compaction_info(buffer_percent: Any) -> CompactionInfo:
    """Server-reported compaction threshold, clamped to 50..100.

    Without one, the default threshold is returned marked unconfigured, so
    an explicit 80 can be told apart from the fallback 80.
    """
    number = _finite(buffer_percent)
    if number is None:
        return CompactionInfo(DEFAULT_COMPACTION_PERCENT, is_configured=False)
    return CompactionInfo(_round_half_up(max(50.0, min(100.0, number))), is_configured=True)


def get_plan_name(
    subscription_type: str,
    has_oauth_token: bool = False,
    default_plan: str | None = "Pro",
) -> str | None:
    """Classify the subscription type string into a display plan name.

    An OAuth token with no subscription type is assumed to be
    ``default_plan`` (keychain entries often lack the metadata). Pass None
    or "" to disable that assumption.
    """
    lower = subscription_type.lower()
    if "max" in lower:
        return "Max"
    if "pro" in lower:
        return "Pro"
    if "team" in lower:
        return "Team"
    if "api" in lower:
        return None
    if not subscription_type:
        if has_oauth_token and default_plan:
            log.debug("No subscriptionType but has OAuth token, defaulting to %s", default_plan)
            return default_plan
        return None
    return subscription_type[0].upper() + subscription_type[1:]


def format_time_to_reset(reset_at: datetime, now: datetime) -> str:
    """Human countdown such as ``42m``, ``2h 15m`` or ``3d 4h``."""
    diff = (reset_at - now).total_seconds()
    if diff <= 0:
        return "now"

    total_mins = math.ceil(diff / 60)
    if total_mins < 60:
        return f"{total_mins}m"

    hours, mins = divmod(total_mins, 60)
    if hours < 24:
        return f"{hours}h {mins}m" if mins > 0 else f"{hours}h"

    days, remaining_hours = divmod(hours, 24)
    return f"{days}d {remaining_hours}h" if remaining_hours > 0 else f"{days}d"
