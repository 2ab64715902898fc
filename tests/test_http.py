"""Tests for shared connector HTTP helpers."""

import asyncio

import httpx
import pytest

from lifecycle_api.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ProviderAPIError,
    TransientError,
)
from lifecycle_api.providers.http import (
    AuthFallbackClient,
    paginate_cursor,
    paginate_offset,
    parse_json,
    raise_for_provider_status,
    require_field,
    send_with_rate_limit,
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestAuthFallbackClient:
    """Authorization candidates are tried in order per call."""

    def test_falls_back_to_next_candidate_on_401(self):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers["Authorization"])
            if request.headers["Authorization"] == "Bearer invalid":
                return httpx.Response(401, text="bad token")
            return httpx.Response(200, json={"ok": True})

        async def run():
            async with _client(handler) as http:
                api = AuthFallbackClient(http, ["Bearer invalid", "Basic dmFsaWQ="], "Test")
                return await api.request("GET", "https://api.test/resource")

        assert asyncio.run(run()) == {"ok": True}
        assert seen == ["Bearer invalid", "Basic dmFsaWQ="]

    def test_all_candidates_rejected(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, text="forbidden")

        async def run():
            async with _client(handler) as http:
                api = AuthFallbackClient(http, ["Bearer a", "Bearer b"], "Test")
                await api.request("GET", "https://api.test/resource")

        with pytest.raises(AuthenticationError) as exc_info:
            asyncio.run(run())
        assert "403" in exc_info.value.message

    def test_other_errors_do_not_try_next_candidate(self):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(404, text="missing")

        async def run():
            async with _client(handler) as http:
                api = AuthFallbackClient(http, ["Bearer a", "Bearer b"], "Test")
                await api.request("GET", "https://api.test/resource")

        with pytest.raises(ProviderAPIError) as exc_info:
            asyncio.run(run())
        assert exc_info.value.status_code == 404
        assert calls == 1

    def test_duplicate_and_empty_candidates_are_dropped(self):
        api = AuthFallbackClient(httpx.AsyncClient(), ["Bearer a", "", "Bearer a"], "Test")
        assert api.auth_headers == ["Bearer a"]

    def test_no_candidates_is_a_configuration_error(self):
        async def run():
            async with _client(lambda request: httpx.Response(200)) as http:
                await AuthFallbackClient(http, [], "Test").request("GET", "https://api.test/")

        with pytest.raises(ConfigurationError):
            asyncio.run(run())


class TestSendWithRateLimit:
    def test_retries_after_429(self):
        responses = [
            httpx.Response(429, headers={"Retry-After": "0"}),
            httpx.Response(200, json={"done": True}),
        ]

        async def run():
            async with _client(lambda request: responses.pop(0)) as http:
                return await send_with_rate_limit(http, "GET", "https://api.test/")

        response = asyncio.run(run())
        assert response.status_code == 200
        assert responses == []

    def test_network_errors_become_transient(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async def run():
            async with _client(handler) as http:
                await send_with_rate_limit(http, "GET", "https://api.test/")

        with pytest.raises(TransientError) as exc_info:
            asyncio.run(run())
        assert exc_info.value.retryable is True


class TestRaiseForProviderStatus:
    @pytest.mark.parametrize(
        ("status", "error_type"),
        [
            (429, TransientError),
            (502, TransientError),
            (401, AuthenticationError),
            (403, AuthenticationError),
            (400, ProviderAPIError),
            (404, ProviderAPIError),
        ],
    )
    def test_status_mapping(self, status, error_type):
        response = httpx.Response(status, text="nope")
        with pytest.raises(error_type):
            raise_for_provider_status("Test", response)

    def test_expected_status_passes(self):
        raise_for_provider_status("Test", httpx.Response(204), expected=(200, 204))

    def test_parse_json_handles_empty_bodies(self):
        assert parse_json(httpx.Response(204)) == {}
        assert parse_json(httpx.Response(200, text="not json")) == {}
        assert parse_json(httpx.Response(200, json=[1, 2])) == [1, 2]

    def test_require_field_returns_value(self):
        assert require_field("Jira", {"accountId": "abc"}, "accountId") == "abc"

    @pytest.mark.parametrize("body", [{}, {"accountId": ""}, {"accountId": None}, [], "ok"])
    def test_require_field_rejects_malformed_bodies(self, body):
        with pytest.raises(ProviderAPIError, match="missing \"accountId\""):
            require_field("Jira", body, "accountId")


class TestPagination:
    def test_cursor_pagination_is_bounded(self):
        calls: list[str | None] = []

        async def fetch_page(cursor):
            calls.append(cursor)
            return [len(calls)], f"page-{len(calls) + 1}"

        items = asyncio.run(paginate_cursor(fetch_page, max_pages=3))
        assert items == [1, 2, 3]
        assert calls == [None, "page-2", "page-3"]

    def test_cursor_pagination_stops_without_next(self):
        async def fetch_page(cursor):
            return (["a", "b"], "next") if cursor is None else (["c"], None)

        assert asyncio.run(paginate_cursor(fetch_page, max_pages=10)) == ["a", "b", "c"]

    def test_offset_pagination_stops_on_last_page(self):
        offsets: list[int] = []

        async def fetch_page(start):
            offsets.append(start)
            return [start], start >= 100

        assert asyncio.run(paginate_offset(fetch_page, page_size=50, max_pages=10)) == [0, 50, 100]
        assert offsets == [0, 50, 100]
