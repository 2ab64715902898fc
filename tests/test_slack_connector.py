"""Tests for the Slack connector against a mocked Web API."""

import asyncio
from urllib.parse import parse_qs
from uuid import uuid4

import httpx

from conftest import make_employee, make_integration, make_rule
from lifecycle_api.models.domain.account import AccountStatus, AppAccount
from lifecycle_api.models.domain.connection_config import SlackConfig
from lifecycle_api.models.domain.integration import IntegrationType
from lifecycle_api.providers.slack import SlackConnector

BOT_TOKEN = "xoxb-bot"
ADMIN_TOKEN = "xoxp-admin"


class FakeSlack:
    """Answers Web API methods from a table of canned bodies."""

    def __init__(self, responses: dict[str, dict]) -> None:
        self.responses = responses
        self.calls: list[tuple[str, dict[str, str], str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit("/", 1)[-1]
        params = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        token = request.headers["Authorization"].removeprefix("Bearer ")
        self.calls.append((method, params, token))
        body = self.responses.get(method, {"ok": True})
        if callable(body):
            body = body(params)
        return httpx.Response(200, json=body)

    def methods(self) -> list[str]:
        return [method for method, _, _ in self.calls]

    def params(self, name: str) -> list[dict[str, str]]:
        return [params for method, params, _ in self.calls if method == name]


def _connector(fake: FakeSlack, **config) -> SlackConnector:
    settings = {"bot_token": BOT_TOKEN, "team_id": "T1", **config}
    return SlackConnector(
        SlackConfig(**settings),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(fake)),
    )


def _account(integration, **fields) -> AppAccount:
    return AppAccount(
        id=uuid4(),
        employee_id=uuid4(),
        integration_id=integration.id,
        status=AccountStatus.ACTIVE,
        **fields,
    )


USER_NOT_FOUND = {"ok": False, "error": "users_not_found"}


class TestSlackProvision:
    def test_unknown_user_is_invited_to_default_channels(self):
        fake = FakeSlack({"users.lookupByEmail": USER_NOT_FOUND})
        connector = _connector(fake, admin_token=ADMIN_TOKEN, default_channels=["C100", "C200"])

        result = asyncio.run(
            connector.provision_employee(make_employee(), make_integration(IntegrationType.SLACK), [])
        )

        assert result.success is True
        assert result.external_user_id is None
        assert result.provisioned_resources == {"invited": True, "channels": ["C100", "C200"]}
        invite = fake.calls[-1]
        assert invite[0] == "admin.users.invite"
        assert invite[1] == {"email": "ada@example.com", "team_id": "T1", "channel_ids": "C100,C200"}
        assert invite[2] == ADMIN_TOKEN

    def test_unknown_user_without_admin_token(self):
        fake = FakeSlack({"users.lookupByEmail": USER_NOT_FOUND})
        connector = _connector(fake, default_channels=["C100"])

        result = asyncio.run(
            connector.provision_employee(make_employee(), make_integration(IntegrationType.SLACK), [])
        )

        assert result.success is False
        assert result.error_kind == "not_found"
        assert "admin.users.invite" not in fake.methods()

    def test_invite_requires_channels(self):
        fake = FakeSlack({"users.lookupByEmail": USER_NOT_FOUND})
        result = asyncio.run(
            _connector(fake, admin_token=ADMIN_TOKEN).provision_employee(
                make_employee(), make_integration(IntegrationType.SLACK), []
            )
        )
        assert result.success is False
        assert result.error_kind == "configuration"

    def test_channel_names_are_resolved_to_ids(self):
        fake = FakeSlack(
            {
                "users.lookupByEmail": {"ok": True, "user": {"id": "U1"}},
                "conversations.list": {
                    "ok": True,
                    "channels": [
                        {"id": "C100", "name": "general"},
                        {"id": "C200", "name": "backend"},
                    ],
                },
            }
        )
        integration = make_integration(IntegrationType.SLACK)
        rules = [
            make_rule(integration_id=integration.id, channels=["#general", "backend", "nowhere"])
        ]

        result = asyncio.run(_connector(fake).provision_employee(make_employee(), integration, rules))

        assert result.success is True
        assert result.external_user_id == "U1"
        assert result.provisioned_resources == {
            "channels": ["#general", "backend"],
            "user_groups": [],
        }
        assert fake.params("conversations.invite") == [
            {"channel": "C100", "users": "U1"},
            {"channel": "C200", "users": "U1"},
        ]

    def test_existing_account_is_reactivated(self):
        fake = FakeSlack({})
        integration = make_integration(IntegrationType.SLACK)

        result = asyncio.run(
            _connector(fake, admin_token=ADMIN_TOKEN).provision_employee(
                make_employee(), integration, [], _account(integration, external_user_id="U1")
            )
        )

        assert result.success is True
        assert fake.methods() == ["admin.users.setRegular"]


class TestSlackDeprovision:
    def test_admin_deactivation(self):
        fake = FakeSlack({})
        integration = make_integration(IntegrationType.SLACK)

        result = asyncio.run(
            _connector(fake, admin_token=ADMIN_TOKEN).deprovision_employee(
                make_employee(), integration, _account(integration, external_user_id="U1")
            )
        )

        assert result.success is True
        assert result.message == "Slack user deactivated"
        assert fake.methods() == ["admin.users.setInactive"]

    def test_failed_deactivation_falls_back_to_kicking(self):
        fake = FakeSlack(
            {
                "admin.users.setInactive": {"ok": False, "error": "not_allowed_token_type"},
                "users.conversations": {
                    "ok": True,
                    "channels": [{"id": "C100"}, {"id": "C200"}, {"name": "no-id"}],
                },
                "conversations.kick": lambda params: (
                    {"ok": False, "error": "cant_kick_from_general"}
                    if params["channel"] == "C100"
                    else {"ok": True}
                ),
            }
        )
        integration = make_integration(IntegrationType.SLACK)

        result = asyncio.run(
            _connector(fake, admin_token=ADMIN_TOKEN).deprovision_employee(
                make_employee(), integration, _account(integration, external_user_id="U1")
            )
        )

        assert result.success is True
        assert result.message == "Removed from 1 channel(s)"
        assert [p["channel"] for p in fake.params("conversations.kick")] == ["C100", "C200"]

    def test_without_admin_token_only_kicks(self):
        fake = FakeSlack({"users.conversations": {"ok": True, "channels": [{"id": "C100"}]}})
        integration = make_integration(IntegrationType.SLACK)

        result = asyncio.run(
            _connector(fake).deprovision_employee(
                make_employee(), integration, _account(integration, external_user_id="U1")
            )
        )

        assert result.success is True
        assert fake.methods() == ["users.conversations", "conversations.kick"]

    def test_missing_user_id(self):
        integration = make_integration(IntegrationType.SLACK)
        result = asyncio.run(
            _connector(FakeSlack({})).deprovision_employee(
                make_employee(), integration, _account(integration)
            )
        )
        assert result.success is False
        assert result.error_kind == "not_found"


class TestSlackConnection:
    def test_missing_scopes_are_reported(self):
        fake = FakeSlack({"apps.permissions.scopes.list": {"ok": True, "scopes": ["users:read"]}})

        result = asyncio.run(_connector(fake).test_connection())

        assert result.success is False
        assert result.error_kind == "configuration"
        assert "users:read.email" in result.error

    def test_revoked_token(self):
        fake = FakeSlack({"auth.test": {"ok": False, "error": "token_revoked"}})
        result = asyncio.run(_connector(fake).test_connection())
        assert result.success is False
        assert result.error_kind == "authentication"
