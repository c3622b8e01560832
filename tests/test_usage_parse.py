"""Tests for usage response parsing and merging."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from sessionhud.usage.models import (
    TIER_MAX5,
    TIER_MAX20,
    ModelQuota,
    UsageData,
    is_limit_reached,
    is_model_quota_exhausted,
    most_restrictive_quota,
)
from sessionhud.usage.parse import (
    format_time_to_reset,
    get_plan_name,
    merge_responses,
    parse_compaction_info,
    parse_date,
    parse_model_quotas,
    parse_plan_tier,
    parse_utilization,
    parse_windows,
)

NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestParseUtilization:
    """Clamping and normalisation of window percentages."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (42, 42),
            (150, 100),
            (-5, 0),
            (33.4, 33),
            (33.5, 34),
            (0, 0),
            (float("nan"), None),
            (float("inf"), None),
            (float("-inf"), None),
            (None, None),
            ("50", None),
            (True, None),
        ],
    )
    def test_values(self, raw, expected) -> None:
        assert parse_utilization(raw) == expected

    def test_zero_is_not_null(self) -> None:
        assert parse_utilization(0) is not None


class TestMergeResponses:
    """Legacy endpoint takes precedence field by field."""

    def test_legacy_wins_when_both_present(self) -> None:
        legacy = {"five_hour": {"utilization": 10}}
        enhanced = {"five_hour": {"utilization": 90}, "model_quotas": [{"model_id": "opus"}]}
        merged = merge_responses(legacy, enhanced)
        assert merged["five_hour"] == {"utilization": 10}
        assert merged["model_quotas"] == [{"model_id": "opus"}]

    def test_missing_legacy_field_falls_back(self) -> None:
        merged = merge_responses({"five_hour": None}, {"five_hour": {"utilization": 7}})
        assert merged["five_hour"] == {"utilization": 7}

    def test_one_side_missing(self) -> None:
        enhanced = {"seven_day": {"utilization": 3}}
        assert merge_responses(None, enhanced) is enhanced
        assert merge_responses(enhanced, None) is enhanced

    def test_both_missing(self) -> None:
        assert merge_responses(None, None) is None


class TestParseWindows:
    """Window utilization and reset dates."""

    def test_windows(self) -> None:
        five, seven, five_reset, seven_reset = parse_windows(
            {
                "five_hour": {"utilization": 55.6, "resets_at": "2025-01-01T14:00:00Z"},
                "seven_day": {"utilization": None, "resets_at": "not a date"},
            }
        )
        assert (five, seven) == (56, None)
        assert five_reset == datetime(2025, 1, 1, 14, 0, 0, tzinfo=timezone.utc)
        assert seven_reset is None

    def test_missing_sections(self) -> None:
        assert parse_windows({"five_hour": "bogus"}) == (None, None, None, None)

    def test_parse_date_rejects_non_strings(self) -> None:
        assert parse_date(12345) is None
        assert parse_date("") is None


class TestModelQuotas:
    """Per-model quota mapping."""

    def test_placeholders(self) -> None:
        quotas = parse_model_quotas(
            [
                {"model_id": "claude-opus", "utilization": 120, "weekly_hours_used": 3.5},
                {"display_name": "Mystery"},
                {},
                "junk",
            ]
        )
        assert [(q.model_id, q.display_name, q.utilization) for q in quotas] == [
            ("claude-opus", "claude-opus", 100),
            ("unknown", "Mystery", None),
            ("unknown", "Unknown Model", None),
        ]
        assert quotas[0].weekly_hours_used == 3.5

    def test_not_a_list(self) -> None:
        assert parse_model_quotas({"model_id": "x"}) == []


class TestPlanTier:
    """Tier resolution."""

    def test_explicit_tier_with_default_tokens(self) -> None:
        tier = parse_plan_tier("max20", None, None)
        assert (tier.tier, tier.tokens_per_window) == (TIER_MAX20, 220_000)
        tier = parse_plan_tier("5", None, None)
        assert (tier.tier, tier.tokens_per_window) == (TIER_MAX5, 88_000)

    def test_explicit_tokens_override(self) -> None:
        tier = parse_plan_tier("Max5", 100_000, None)
        assert tier.tokens_per_window == 100_000

    def test_credential_hint_fallback(self) -> None:
        tier = parse_plan_tier(None, 999, "rate_tier_20")
        assert (tier.tier, tier.tokens_per_window) == (TIER_MAX20, 220_000)

    def test_nothing_known(self) -> None:
        tier = parse_plan_tier(None, None, None)
        assert not tier.is_active


class TestCompaction:
    """Compaction threshold."""

    def test_default_is_unconfigured(self) -> None:
        info = parse_compaction_info(None)
        assert (info.buffer_percent, info.is_configured) == (80, False)

    def test_explicit_same_value_is_configured(self) -> None:
        info = parse_compaction_info(80)
        assert (info.buffer_percent, info.is_configured) == (80, True)

    def test_clamped(self) -> None:
        assert parse_compaction_info(10).buffer_percent == 50
        assert parse_compaction_info(130).buffer_percent == 100
        assert not parse_compaction_info(float("nan")).is_configured


class TestPlanName:
    """Subscription type classification."""

    @pytest.mark.parametrize(
        ("subscription", "expected"),
        [
            ("claude_max", "Max"),
            ("Pro", "Pro"),
            ("team_plan", "Team"),
            ("api", None),
            ("enterprise", "Enterprise"),
        ],
    )
    def test_keywords(self, subscription: str, expected: str | None) -> None:
        assert get_plan_name(subscription, has_oauth_token=True) == expected

    def test_empty_with_token_defaults_to_pro(self) -> None:
        assert get_plan_name("", has_oauth_token=True) == "Pro"

    def test_empty_without_token(self) -> None:
        assert get_plan_name("", has_oauth_token=False) is None

    def test_default_is_overridable(self) -> None:
        assert get_plan_name("", has_oauth_token=True, default_plan="Max") == "Max"
        assert get_plan_name("", has_oauth_token=True, default_plan="") is None


class TestTimeToReset:
    """Countdown strings."""

    @pytest.mark.parametrize(
        ("delta", "expected"),
        [
            (timedelta(seconds=-1), "now"),
            (timedelta(0), "now"),
            (timedelta(seconds=30), "1m"),
            (timedelta(minutes=42), "42m"),
            (timedelta(hours=2), "2h"),
            (timedelta(hours=2, minutes=15), "2h 15m"),
            (timedelta(days=3), "3d"),
            (timedelta(days=3, hours=4, minutes=10), "3d 4h"),
        ],
    )
    def test_format(self, delta: timedelta, expected: str) -> None:
        assert format_time_to_reset(NOW + delta, NOW) == expected


class TestHelpers:
    """Derived predicates on UsageData."""

    def test_limit_reached(self) -> None:
        assert is_limit_reached(UsageData(plan_name="Pro", five_hour=100))
        assert is_limit_reached(UsageData(plan_name="Pro", seven_day=100))
        assert not is_limit_reached(UsageData(plan_name="Pro", five_hour=99))

    def test_model_quotas(self) -> None:
        data = UsageData(
            plan_name="Max",
            model_quotas=(
                ModelQuota("sonnet", "Sonnet", utilization=40),
                ModelQuota("opus", "Opus", utilization=100),
                ModelQuota("haiku", "Haiku", utilization=None),
            ),
        )
        assert is_model_quota_exhausted(data, "opus")
        assert not is_model_quota_exhausted(data, "sonnet")
        assert not is_model_quota_exhausted(data, "missing")
        assert most_restrictive_quota(data).model_id == "opus"
        assert most_restrictive_quota(UsageData(plan_name="Max")) is None
