"""Tests for the Passbolt connector in API and CLI mode."""

import asyncio
import json
from uuid import uuid4

import httpx
import pytest

from conftest import make_employee, make_integration, make_rule
from lifecycle_api.models.domain.account import AccountStatus, AppAccount
from lifecycle_api.models.domain.connection_config import PassboltConfig
from lifecycle_api.models.domain.integration import IntegrationType
from lifecycle_api.providers.passbolt import PassboltConnector, created_user_id, split_name

INVITE_OUTPUT = b"User saved successfully.\nThe user can complete the registration: https://vault.acme.test/setup/start/u1/t1\n"


class FakeProcess:
    def __init__(self, stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0) -> None:
        self._stdout = stdout
        self._stderr = stderr
        self.returncode = returncode

    async def communicate(self) -> tuple[bytes, bytes]:
        return self._stdout, self._stderr

    def kill(self) -> None:
        pass


class FakeCli:
    """Stands in for subprocess creation and records each invocation."""

    def __init__(self) -> None:
        self.process = FakeProcess(stdout=INVITE_OUTPUT)
        self.calls: list[dict] = []

    async def __call__(self, *argv, **kwargs) -> FakeProcess:
        self.calls.append({"argv": list(argv), "cwd": kwargs.get("cwd")})
        return self.process


@pytest.fixture
def cli(monkeypatch) -> FakeCli:
    fake = FakeCli()
    monkeypatch.setattr("lifecycle_api.providers.passbolt.asyncio.create_subprocess_exec", fake)
    return fake


class FakePassbolt:
    def __init__(self, created: dict | None = None, search: list[dict] | None = None) -> None:
        self.created = created if created is not None else {"body": {"id": "pb-1"}}
        self.search = search or []
        self.requests: list[tuple[str, str, dict | None]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer pb-token"
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, request.url.path, body))
        if request.method == "POST":
            return httpx.Response(200, json=self.created)
        if request.method == "GET" and request.url.path == "/users.json":
            return httpx.Response(200, json={"body": self.search})
        if request.method == "DELETE":
            return httpx.Response(200, json={"header": {"status": "success"}})
        return httpx.Response(200, json={"body": "OK"})


def _api_connector(fake: FakePassbolt, **config) -> PassboltConnector:
    settings = {"base_url": "https://vault.acme.test/", "api_token": "pb-token", **config}
    return PassboltConnector(
        PassboltConfig(**settings),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(fake)),
    )


def _cli_connector(**config) -> PassboltConnector:
    settings = {"mode": "CLI", "cli_path": "/var/www/passbolt", **config}
    return PassboltConnector(
        PassboltConfig(**settings),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))),
    )


def _account(integration, **fields) -> AppAccount:
    return AppAccount(
        id=uuid4(),
        employee_id=uuid4(),
        integration_id=integration.id,
        status=AccountStatus.ACTIVE,
        **fields,
    )


class TestPassboltMode:
    def test_api_wins_when_both_are_configured(self):
        connector = _api_connector(FakePassbolt(), cli_path="/var/www/passbolt")
        assert connector.use_api is True

    def test_explicit_cli_mode(self):
        connector = _cli_connector(base_url="https://vault.acme.test", api_token="pb-token")
        assert connector.use_api is False


class TestPassboltApi:
    def test_registers_user_with_rule_role(self):
        fake = FakePassbolt()
        integration = make_integration(IntegrationType.PASSBOLT)
        rules = [make_rule(integration_id=integration.id, isAdmin=True)]

        result = asyncio.run(_api_connector(fake).provision_employee(make_employee(), integration, rules))

        assert result.success is True
        assert result.external_user_id == "pb-1"
        assert result.provisioned_resources == {"role": "admin"}
        assert fake.requests == [
            (
                "POST",
                "/users.json",
                {"username": "ada@example.com", "first_name": "Ada", "last_name": "Lovelace", "role": "admin"},
            )
        ]

    def test_unexpected_create_body_leaves_id_unset(self):
        fake = FakePassbolt(created={"body": "created"})
        result = asyncio.run(
            _api_connector(fake).provision_employee(
                make_employee(), make_integration(IntegrationType.PASSBOLT), []
            )
        )
        assert result.success is True
        assert result.external_user_id is None
        assert result.provisioned_resources == {"role": "user"}

    def test_deprovision_looks_up_unknown_id(self):
        fake = FakePassbolt(search=[{"id": "pb-9", "username": "ada@example.com"}])
        integration = make_integration(IntegrationType.PASSBOLT)

        result = asyncio.run(
            _api_connector(fake).deprovision_employee(make_employee(), integration, _account(integration))
        )

        assert result.success is True
        assert [(method, path) for method, path, _ in fake.requests] == [
            ("GET", "/users.json"),
            ("DELETE", "/users/pb-9.json"),
        ]

    def test_deprovision_of_missing_user_succeeds(self):
        fake = FakePassbolt()
        integration = make_integration(IntegrationType.PASSBOLT)

        result = asyncio.run(
            _api_connector(fake).deprovision_employee(make_employee(), integration, _account(integration))
        )

        assert result.success is True
        assert result.message == "Passbolt user not found"


class TestPassboltCli:
    def test_register_runs_as_the_web_server_user(self, cli):
        integration = make_integration(IntegrationType.PASSBOLT)

        result = asyncio.run(
            _cli_connector(cli_user=" www-data ").provision_employee(make_employee(), integration, [])
        )

        assert result.success is True
        assert result.external_username == "ada@example.com"
        assert result.provisioned_resources == {
            "role": "user",
            "invite_url": "https://vault.acme.test/setup/start/u1/t1",
        }
        assert cli.calls[0] == {
            "argv": [
                "sudo", "-u", "www-data",
                "./bin/cake", "passbolt", "register_user",
                "-u", "ada@example.com", "-f", "Ada", "-l", "Lovelace", "-r", "user",
            ],
            "cwd": "/var/www/passbolt",
        }

    def test_without_cli_user_runs_directly(self, cli):
        integration = make_integration(IntegrationType.PASSBOLT)

        result = asyncio.run(
            _cli_connector().deprovision_employee(make_employee(), integration, _account(integration))
        )

        assert result.success is True
        assert cli.calls[0]["argv"] == ["./bin/cake", "passbolt", "delete_user", "-u", "ada@example.com"]

    def test_failing_command_is_a_provider_error(self, cli):
        cli.process.returncode = 1
        cli.process._stderr = b"Error: the user already exists"

        result = asyncio.run(
            _cli_connector().provision_employee(
                make_employee(), make_integration(IntegrationType.PASSBOLT), []
            )
        )

        assert result.success is False
        assert result.error_kind == "provider_error"
        assert "already exists" in result.error


class TestPassboltHelpers:
    @pytest.mark.parametrize(
        ("full_name", "email", "expected"),
        [
            ("Ada King Lovelace", None, ("Ada", "King Lovelace")),
            ("Cher", None, ("Cher", "Cher")),
            ("", "ada@example.com", ("ada", "ada")),
            (None, None, ("New", "User")),
        ],
    )
    def test_split_name(self, full_name, email, expected):
        assert split_name(full_name, email) == expected

    @pytest.mark.parametrize(
        ("response", "expected"),
        [
            ({"body": {"id": "pb-1"}}, "pb-1"),
            ({"id": "pb-2"}, "pb-2"),
            ({"body": {"user": {"id": "pb-3"}}}, "pb-3"),
            ({"body": {"id": 7}}, None),
            ([], None),
        ],
    )
    def test_created_user_id(self, response, expected):
        assert created_user_id(response) == expected
