"""Rate-limit usage data returned by the usage fetcher.

Utilization values are 0-100 integers or None when unknown; a None is never
silently turned into 0, because 0 means "nothing used yet".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sessionhud.models import parse_timestamp

TIER_MAX5 = "Max5"
TIER_MAX20 = "Max20"


@dataclass(frozen=True)
class ModelQuota:
    """Per-model quota for compute-intensive models."""

    model_id: str
    display_name: str
    utilization: int | None = None
    weekly_hours_used: float | None = None
    weekly_hours_limit: float | None = None
    tokens_used: int | None = None
    tokens_limit: int | None = None
    resets_at: datetime | None = None


@dataclass(frozen=True)
class PlanTierInfo:
    """Subscription tier and its token ceiling per five-hour window."""

    tier: str | None
    tokens_per_window: int | None

    @property
    def is_active(self) -> bool:
        return self.tier is not None


@dataclass(frozen=True)
class CompactionInfo:
    """Context percentage at which automatic compaction kicks in."""

    buffer_percent: int
    is_configured: bool


@dataclass(frozen=True)
class UsageData:
    """Usage snapshot for the logged-in account.

    ``plan_name`` None means a pay-per-token account: nothing to show.
    ``api_unavailable`` means the account has a plan but both endpoints
    failed, which is shown as a warning.
    """

    plan_name: str | None
    five_hour: int | None = None
    seven_day: int | None = None
    five_hour_reset_at: datetime | None = None
    seven_day_reset_at: datetime | None = None
    api_unavailable: bool = False

    model_quotas: tuple[ModelQuota, ...] = field(default_factory=tuple)
    plan_tier: PlanTierInfo | None = None
    compaction: CompactionInfo | None = None
    organization_uuid: str | None = None

    # Derived from "now" on every read, never persisted
    five_hour_reset_in: str | None = None
    seven_day_reset_in: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the cache file (dates as ISO strings, no countdowns)."""
        return {
            "plan_name": self.plan_name,
            "five_hour": self.five_hour,
            "seven_day": self.seven_day,
            "five_hour_reset_at": _iso(self.five_hour_reset_at),
            "seven_day_reset_at": _iso(self.seven_day_reset_at),
            "api_unavailable": self.api_unavailable,
            "model_quotas": [
                {
                    "model_id": q.model_id,
                    "display_name": q.display_name,
                    "utilization": q.utilization,
                    "weekly_hours_used": q.weekly_hours_used,
                    "weekly_hours_limit": q.weekly_hours_limit,
                    "tokens_used": q.tokens_used,
                    "tokens_limit": q.tokens_limit,
                    "resets_at": _iso(q.resets_at),
                }
                for q in self.model_quotas
            ],
            "plan_tier": (
                {"tier": self.plan_tier.tier, "tokens_per_window": self.plan_tier.tokens_per_window}
                if self.plan_tier
                else None
            ),
            "compaction": (
                {
                    "buffer_percent": self.compaction.buffer_percent,
                    "is_configured": self.compaction.is_configured,
                }
                if self.compaction
                else None
            ),
            "organization_uuid": self.organization_uuid,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UsageData:
        """Rebuild from the cache file, re-hydrating ISO strings into dates.

        Raises:
            KeyError, TypeError, AttributeError: The record is malformed.
        """
        tier = data.get("plan_tier")
        compaction = data.get("compaction")
        return cls(
            plan_name=data["plan_name"],
            five_hour=data.get("five_hour"),
            seven_day=data.get("seven_day"),
            five_hour_reset_at=parse_timestamp(data.get("five_hour_reset_at")),
            seven_day_reset_at=parse_timestamp(data.get("seven_day_reset_at")),
            api_unavailable=bool(data.get("api_unavailable", False)),
            model_quotas=tuple(
                ModelQuota(
                    model_id=q["model_id"],
                    display_name=q["display_name"],
                    utilization=q.get("utilization"),
                    weekly_hours_used=q.get("weekly_hours_used"),
                    weekly_hours_limit=q.get("weekly_hours_limit"),
                    tokens_used=q.get("tokens_used"),
                    tokens_limit=q.get("tokens_limit"),
                    resets_at=parse_timestamp(q.get("resets_at")),
                )
                for q in data.get("model_quotas") or []
            ),
            plan_tier=PlanTierInfo(tier["tier"], tier.get("tokens_per_window")) if tier else None,
            compaction=(
                CompactionInfo(compaction["buffer_percent"], bool(compaction["is_configured"]))
                if compaction
                else None
            ),
            organization_uuid=data.get("organization_uuid"),
        )


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def is_limit_reached(data: UsageData) -> bool:
    """Either rolling window is exhausted."""
    return data.five_hour == 100 or data.seven_day == 100


def is_model_quota_exhausted(data: UsageData, model_id: str) -> bool:
    for quota in data.model_quotas:
        if quota.model_id == model_id:
            return quota.utilization == 100
    return False


def most_restrictive_quota(data: UsageData) -> ModelQuota | None:
    """The model quota with the highest utilization (first wins on ties)."""
    if not data.model_quotas:
        return None
    best = data.model_quotas[0]
    for quota in data.model_quotas[1:]:
        if (quota.utilization or 0) > (best.utilization or 0):
            best = quota
    return best
