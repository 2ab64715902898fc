"""Tests for the standup connector and the connectors without provisioning."""

import asyncio
import json
from uuid import uuid4

import httpx
import pytest

from conftest import make_employee, make_integration
from lifecycle_api.exceptions import ProviderAPIError
from lifecycle_api.models.domain.account import AccountStatus, AppAccount
from lifecycle_api.models.domain.connection_config import (
    FirefliesConfig,
    StandupConfig,
    WebflowConfig,
)
from lifecycle_api.models.domain.integration import IntegrationType
from lifecycle_api.providers import FirefliesConnector, StandupConnector, WebflowConnector


class Recorder:
    """Returns one canned response and records every request."""

    def __init__(self, response: httpx.Response | None = None) -> None:
        self.response = response or httpx.Response(200, json={})
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response


def _client(recorder: Recorder) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(recorder))


def _account(integration) -> AppAccount:
    return AppAccount(
        id=uuid4(),
        employee_id=uuid4(),
        integration_id=integration.id,
        status=AccountStatus.ACTIVE,
    )


class TestStandupConnector:
    def _connector(self, recorder: Recorder) -> StandupConnector:
        config = StandupConfig(api_url="https://standup.acme.test/", api_key="sk-1")
        return StandupConnector(config, http_client=_client(recorder))

    def test_remove_member(self):
        recorder = Recorder()

        result = asyncio.run(self._connector(recorder).remove_member("ada@example.com"))

        assert result.success is True
        request = recorder.requests[0]
        assert request.method == "DELETE"
        assert str(request.url) == "https://standup.acme.test/api/teams/members"
        assert request.headers["X-API-Key"] == "sk-1"
        assert json.loads(request.content) == {"email": "ada@example.com"}

    def test_remove_member_failure_raises(self):
        recorder = Recorder(httpx.Response(404, text="no such member"))
        with pytest.raises(ProviderAPIError):
            asyncio.run(self._connector(recorder).remove_member("ada@example.com"))

    def test_generic_provisioning_is_not_supported(self):
        recorder = Recorder()
        connector = self._connector(recorder)
        integration = make_integration(IntegrationType.STANDUPNINJA)

        provisioned = asyncio.run(connector.provision_employee(make_employee(), integration, []))
        deprovisioned = asyncio.run(
            connector.deprovision_employee(make_employee(), integration, _account(integration))
        )

        assert provisioned.success is False
        assert provisioned.error_kind == "configuration"
        assert deprovisioned.success is False
        assert "Standup Sync" in deprovisioned.error
        assert recorder.requests == []

    def test_connection_uses_health_endpoint(self):
        recorder = Recorder()
        assert asyncio.run(self._connector(recorder).test_connection()).success is True
        assert recorder.requests[0].url.path == "/api/health"


def _fireflies(client: httpx.AsyncClient) -> FirefliesConnector:
    return FirefliesConnector(FirefliesConfig(api_key="ff"), http_client=client)


def _webflow(client: httpx.AsyncClient) -> WebflowConnector:
    return WebflowConnector(WebflowConfig(api_token="wf"), http_client=client)


@pytest.mark.parametrize(
    ("connector", "integration_type"),
    [(_fireflies, IntegrationType.FIREFLIES), (_webflow, IntegrationType.WEBFLOW)],
)
class TestConnectorsWithoutProvisioning:
    def test_provision_succeeds_without_calls(self, connector, integration_type):
        recorder = Recorder()
        instance = connector(_client(recorder))

        result = asyncio.run(
            instance.provision_employee(make_employee(), make_integration(integration_type), [])
        )

        assert result.success is True
        assert result.external_email == "ada@example.com"
        assert result.message == f"{instance.provider_name} does not support user provisioning"
        assert recorder.requests == []

    def test_deprovision_succeeds_without_calls(self, connector, integration_type):
        recorder = Recorder()
        integration = make_integration(integration_type)

        result = asyncio.run(
            connector(_client(recorder)).deprovision_employee(
                make_employee(), integration, _account(integration)
            )
        )

        assert result.success is True
        assert recorder.requests == []


class TestConnectionChecks:
    def test_fireflies_reports_graphql_errors(self):
        recorder = Recorder(httpx.Response(200, json={"errors": [{"message": "Invalid API key"}]}))
        connector = _fireflies(_client(recorder))

        result = asyncio.run(connector.test_connection())

        assert result.success is False
        assert result.error == "Fireflies API error: Invalid API key"
        assert recorder.requests[0].headers["Authorization"] == "Bearer ff"

    def test_webflow_requires_a_site(self):
        recorder = Recorder(httpx.Response(200, json={"sites": []}))
        connector = _webflow(_client(recorder))

        result = asyncio.run(connector.test_connection())

        assert result.success is False
        assert result.error_kind == "configuration"

    def test_webflow_with_sites(self):
        recorder = Recorder(httpx.Response(200, json={"sites": [{"id": "site-1"}]}))
        connector = _webflow(_client(recorder))
        assert asyncio.run(connector.test_connection()).success is True
