"""Remote usage quota: fetching, merging, parsing and caching."""

from sessionhud.usage.cache import UsageCache
from sessionhud.usage.fetcher import UsageDeps, get_usage, with_countdowns
from sessionhud.usage.models import (
    CompactionInfo,
    ModelQuota,
    PlanTierInfo,
    UsageData,
    is_limit_reached,
    is_model_quota_exhausted,
    most_restrictive_quota,
)

__all__ = [
    "CompactionInfo",
    "ModelQuota",
    "PlanTierInfo",
    "UsageCache",
    "UsageData",
    "UsageDeps",
    "get_usage",
    "is_limit_reached",
    "is_model_quota_exhausted",
    "most_restrictive_quota",
    "with_countdowns",
]
