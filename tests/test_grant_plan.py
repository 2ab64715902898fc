"""Tests for ordered grant application."""

import asyncio

import pytest

from lifecycle_api.exceptions import PartialApplicationError, ProviderAPIError, TransientError
from lifecycle_api.providers.grants import GrantPlan


def _recorder(calls: list[str], name: str, error: Exception | None = None):
    async def apply():
        calls.append(name)
        if error is not None:
            raise error

    return apply


class TestGrantPlan:
    def test_steps_run_in_order(self):
        calls: list[str] = []
        plan = GrantPlan(resources=("repositories", "groups"))
        plan.add("groups", "devs", _recorder(calls, "group:devs"))
        plan.add("repositories", {"slug": "api"}, _recorder(calls, "repo:api"))

        applied = asyncio.run(plan.execute())

        assert calls == ["group:devs", "repo:api"]
        assert applied == {"repositories": [{"slug": "api"}], "groups": ["devs"]}

    def test_declared_resources_are_always_reported(self):
        applied = asyncio.run(GrantPlan(resources=("channels", "user_groups")).execute())
        assert applied == {"channels": [], "user_groups": []}

    def test_required_failure_stops_and_reports_applied(self):
        calls: list[str] = []
        plan = GrantPlan(resources=("repositories", "groups"))
        plan.add("groups", "devs", _recorder(calls, "group:devs"))
        plan.add("repositories", {"slug": "api"}, _recorder(calls, "repo:api", TransientError("boom")))
        plan.add("repositories", {"slug": "web"}, _recorder(calls, "repo:web"))

        with pytest.raises(PartialApplicationError) as exc_info:
            asyncio.run(plan.execute())

        assert calls == ["group:devs", "repo:api"]
        assert exc_info.value.applied == {"repositories": [], "groups": ["devs"]}
        assert exc_info.value.message == "boom"
        assert exc_info.value.retryable is True

    def test_failure_carries_the_target_identity(self):
        plan = GrantPlan(
            resources=("groups",), external_user_id="557058:abc", external_email="ada@example.com"
        )
        plan.add("groups", "devs", _recorder([], "group:devs", ProviderAPIError("denied")))

        with pytest.raises(PartialApplicationError) as exc_info:
            asyncio.run(plan.execute())

        assert exc_info.value.external_user_id == "557058:abc"
        assert exc_info.value.external_email == "ada@example.com"
        assert exc_info.value.applied == {"groups": []}

    def test_optional_failure_is_skipped(self):
        calls: list[str] = []
        plan = GrantPlan(resources=("user_groups",))
        plan.add("user_groups", "oncall", _recorder(calls, "oncall", ProviderAPIError("denied")), optional=True)
        plan.add("user_groups", "devs", _recorder(calls, "devs"))

        applied = asyncio.run(plan.execute())

        assert calls == ["oncall", "devs"]
        assert applied == {"user_groups": ["devs"]}
