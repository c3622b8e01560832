"""Tests for the usage HTTP client."""

from __future__ import annotations

import httpx

from sessionhud.usage.client import (
    OAUTH_BETA,
    USAGE_LIMITS_URL,
    USAGE_URL,
    fetch_usage_api,
    fetch_usage_limits,
)


def transport_returning(response: httpx.Response, seen: list[httpx.Request]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return response

    return httpx.MockTransport(handler)


class TestFetchUsageApi:
    """Legacy OAuth usage endpoint."""

    async def test_success_sends_auth_headers(self) -> None:
        seen: list[httpx.Request] = []
        transport = transport_returning(
            httpx.Response(200, json={"five_hour": {"utilization": 12}}), seen
        )
        data = await fetch_usage_api("tok", "org-1", transport=transport)

        assert data == {"five_hour": {"utilization": 12}}
        request = seen[0]
        assert str(request.url) == USAGE_URL
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.headers["anthropic-beta"] == OAUTH_BETA
        assert request.headers["x-organization-uuid"] == "org-1"
        assert request.headers["User-Agent"].startswith("session-hud/")

    async def test_no_org_header_without_org(self) -> None:
        seen: list[httpx.Request] = []
        transport = transport_returning(httpx.Response(200, json={}), seen)
        await fetch_usage_api("tok", transport=transport)
        assert "x-organization-uuid" not in seen[0].headers

    async def test_non_200_is_none(self) -> None:
        transport = transport_returning(httpx.Response(429, json={"error": "slow down"}), [])
        assert await fetch_usage_api("tok", transport=transport) is None

    async def test_invalid_json_is_none(self) -> None:
        transport = transport_returning(httpx.Response(200, text="<html>"), [])
        assert await fetch_usage_api("tok", transport=transport) is None

    async def test_non_object_json_is_none(self) -> None:
        transport = transport_returning(httpx.Response(200, json=[1, 2]), [])
        assert await fetch_usage_api("tok", transport=transport) is None

    async def test_network_error_is_none(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        assert await fetch_usage_api("tok", transport=httpx.MockTransport(handler)) is None

    async def test_timeout_is_none(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        assert await fetch_usage_api("tok", transport=httpx.MockTransport(handler)) is None


class TestFetchUsageLimits:
    """Enhanced usage-limits endpoint."""

    async def test_success(self) -> None:
        seen: list[httpx.Request] = []
        body = {"model_quotas": [], "max_plan_type": "max5"}
        transport = transport_returning(httpx.Response(200, json=body), seen)
        assert await fetch_usage_limits("tok", "org", transport=transport) == body
        assert str(seen[0].url) == USAGE_LIMITS_URL
        assert "anthropic-beta" not in seen[0].headers
        assert seen[0].headers["Authorization"] == "Bearer tok"
