"""Passbolt connector (password manager).

Two transports are supported: the REST API with a bearer token, and the
server-side ``cake`` CLI for self-hosted installs without API access. API
mode wins when both are configured.
"""

import asyncio
import logging
import re
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

from lifecycle_api.exceptions import ConfigurationError, ProviderAPIError, TransientError
from lifecycle_api.models.domain.account import (
    AppAccount,
    DeprovisionOptions,
    DeprovisionResult,
    ProvisionResult,
)
from lifecycle_api.models.domain.connection_config import PassboltConfig
from lifecycle_api.models.domain.employee import Employee
from lifecycle_api.models.domain.integration import Integration, ProvisioningRule
from lifecycle_api.models.domain.provision_data import PasswordManagerGrants
from lifecycle_api.providers.base import BaseConnector
from lifecycle_api.providers.http import parse_json, raise_for_provider_status, send_with_rate_limit
from lifecycle_api.services.rule_resolver import PASSWORD_MANAGER_POLICY, resolve_grants

logger = logging.getLogger(__name__)

CLI_COMMAND = "./bin/cake"
CLI_TIMEOUT_SECONDS = 60.0
INVITE_URL_PATTERN = re.compile(r"https?://\S+", re.IGNORECASE)


def split_name(full_name: str | None, fallback_email: str | None = None) -> tuple[str, str]:
    """Split a display name into first and last name.

    A single word is used for both parts. Without a name the email prefix is
    used, and without either a placeholder name.
    """
    parts = (full_name or "").split()
    if len(parts) == 1:
        return parts[0], parts[0]
    if parts:
        return parts[0], " ".join(parts[1:])
    prefix = (fallback_email or "").split("@")[0]
    if prefix:
        return prefix, prefix
    return "New", "User"


def parse_invite_url(output: str) -> str | None:
    """Extract the registration link printed by ``register_user``."""
    match = INVITE_URL_PATTERN.search(output)
    return match.group(0) if match else None


def created_user_id(response: Any) -> str | None:
    """User id from a ``POST /users.json`` response, bare or wrapped in ``body``."""
    body = response.get("body") if isinstance(response, dict) else None
    if not isinstance(body, dict):
        body = response if isinstance(response, dict) else {}
    user = body.get("user")
    external_id = body.get("id") or (user.get("id") if isinstance(user, dict) else None)
    return external_id if isinstance(external_id, str) else None


class PassboltConnector(BaseConnector[PassboltConfig]):
    """Passbolt user registration and removal."""

    provider_name = "Passbolt"

    @property
    def use_api(self) -> bool:
        """Whether calls go through the REST API rather than the CLI."""
        if self.config.mode == "CLI":
            return False
        return self.config.api_ready

    async def _api(self, method: str, path: str, expected: Sequence[int] = (200,), **kwargs: Any) -> Any:
        url = f"{(self.config.base_url or '').rstrip('/')}{path}"
        response = await send_with_rate_limit(
            self.http,
            method,
            url,
            headers={"Authorization": f"Bearer {self.config.api_token}", "Accept": "application/json"},
            **kwargs,
        )
        raise_for_provider_status(self.provider_name, response, expected)
        return parse_json(response)

    async def _run_cli(self, *args: str) -> str:
        """Run a ``cake passbolt`` command and return its combined output."""
        command = [CLI_COMMAND, "passbolt", *args]
        if self.config.cli_user and self.config.cli_user.strip():
            command = ["sudo", "-u", self.config.cli_user.strip(), *command]

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=self.config.cli_path,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ConfigurationError(f"Failed to run Passbolt CLI: {type(e).__name__}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), CLI_TIMEOUT_SECONDS)
        except asyncio.TimeoutError as e:
            process.kill()
            raise TransientError("Passbolt CLI timed out") from e

        output = f"{stdout.decode(errors='replace')}\n{stderr.decode(errors='replace')}"
        if process.returncode != 0:
            raise ProviderAPIError(
                f"Passbolt CLI exited with status {process.returncode}: {output.strip()[:200]}"
            )
        return output

    async def _find_user_id(self, email: str) -> str | None:
        data = await self._api("GET", f"/users.json?search={quote(email, safe='')}")
        users = data
        if isinstance(data, dict):
            users = data.get("users") or data.get("body") or []
        if isinstance(users, list) and users and isinstance(users[0], dict):
            return users[0].get("id")
        return None

    async def _test_connection(self) -> None:
        if self.use_api:
            await self._api("GET", "/healthcheck.json")
        else:
            await self._run_cli("-h")

    async def _provision(
        self,
        employee: Employee,
        integration: Integration,
        rules: Sequence[ProvisioningRule],
        existing_account: AppAccount | None,
    ) -> ProvisionResult:
        email = employee.primary_email
        if not email:
            raise ConfigurationError("An email address is required for Passbolt provisioning.")

        first_name, last_name = split_name(employee.full_name, email)
        grants: PasswordManagerGrants = resolve_grants(employee, rules, PASSWORD_MANAGER_POLICY)
        role = grants.role or self.config.default_role

        if self.use_api:
            response = await self._api(
                "POST",
                "/users.json",
                expected=(200, 201),
                json={"username": email, "first_name": first_name, "last_name": last_name, "role": role},
            )
            return ProvisionResult(
                success=True,
                external_user_id=created_user_id(response),
                external_email=email,
                provisioned_resources={"role": role},
            )

        output = await self._run_cli(
            "register_user", "-u", email, "-f", first_name, "-l", last_name, "-r", role
        )
        resources: dict[str, Any] = {"role": role}
        invite_url = parse_invite_url(output)
        if invite_url:
            resources["invite_url"] = invite_url
        return ProvisionResult(
            success=True,
            external_email=email,
            external_username=email,
            provisioned_resources=resources,
        )

    async def _deprovision(
        self,
        employee: Employee,
        integration: Integration,
        account: AppAccount,
        options: DeprovisionOptions,
    ) -> DeprovisionResult:
        email = employee.primary_email or account.external_email
        if not email:
            raise ConfigurationError("An email address is required to deprovision Passbolt users.")

        if self.use_api:
            user_id = account.external_user_id or await self._find_user_id(email)
            if not user_id:
                return DeprovisionResult(success=True, message="Passbolt user not found")
            await self._api("DELETE", f"/users/{quote(user_id, safe='')}.json", expected=(200, 204))
        else:
            await self._run_cli("delete_user", "-u", email)
        return DeprovisionResult(success=True, message="Passbolt user deleted")
