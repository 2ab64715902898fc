"""HubSpot connector (CRM)."""

import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

from lifecycle_api.exceptions import ConnectorError, ExternalIdentityNotFoundError, ProviderAPIError
from lifecycle_api.models.domain.account import (
    AppAccount,
    DeprovisionOptions,
    DeprovisionResult,
    ProvisionResult,
)
from lifecycle_api.models.domain.connection_config import HubSpotConfig
from lifecycle_api.models.domain.employee import Employee
from lifecycle_api.models.domain.integration import Integration, ProvisioningRule
from lifecycle_api.providers.base import BaseConnector, require_email
from lifecycle_api.providers.http import parse_json, raise_for_provider_status, send_with_rate_limit
from lifecycle_api.utils.secure_logging import log_warning

logger = logging.getLogger(__name__)


class HubSpotConnector(BaseConnector[HubSpotConfig]):
    """HubSpot seat management via the settings users API."""

    provider_name = "HubSpot"

    @property
    def _users_url(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/settings/v3/users/"

    async def _request(self, method: str, url: str, expected: Sequence[int] = (200,), **kwargs: Any) -> Any:
        response = await send_with_rate_limit(
            self.http,
            method,
            url,
            headers={"Authorization": f"Bearer {self.config.scim_token}", "Accept": "application/json"},
            **kwargs,
        )
        raise_for_provider_status(self.provider_name, response, expected)
        return parse_json(response)

    async def _test_connection(self) -> None:
        await self._request("GET", self._users_url, params={"limit": 1})

    async def _find_user_id(self, email: str) -> str | None:
        try:
            data = await self._request("GET", self._users_url, params={"email": email})
        except ConnectorError as e:
            log_warning(logger, "HubSpot user lookup failed", e)
            return None
        if not isinstance(data, dict):
            return None
        users = [u for u in data.get("results") or data.get("users") or [] if isinstance(u, dict)]
        match = next((u for u in users if (u.get("email") or "").lower() == email.lower()), None)
        candidate = match or (users[0] if users else None)
        if not candidate:
            return None
        user_id = candidate.get("id") or candidate.get("userId")
        return str(user_id) if user_id else None

    async def _provision(
        self,
        employee: Employee,
        integration: Integration,
        rules: Sequence[ProvisioningRule],
        existing_account: AppAccount | None,
    ) -> ProvisionResult:
        email = require_email(employee, self.provider_name)
        existing_id = (
            existing_account.external_user_id if existing_account else None
        ) or await self._find_user_id(email)
        if existing_id:
            return ProvisionResult(success=True, external_user_id=existing_id, external_email=email)

        try:
            created = await self._request(
                "POST",
                self._users_url,
                expected=(200, 201),
                json={"email": email, "sendWelcomeEmail": True},
            )
        except ProviderAPIError as e:
            if e.status_code != 409:
                raise
            # Created concurrently or outside this system
            return ProvisionResult(
                success=True, external_user_id=await self._find_user_id(email), external_email=email
            )

        created_id = (created.get("id") or created.get("userId")) if isinstance(created, dict) else None
        return ProvisionResult(
            success=True,
            external_user_id=str(created_id) if created_id else None,
            external_email=email,
        )

    async def _deprovision(
        self,
        employee: Employee,
        integration: Integration,
        account: AppAccount,
        options: DeprovisionOptions,
    ) -> DeprovisionResult:
        email = employee.primary_email or account.external_email
        user_id = account.external_user_id or (await self._find_user_id(email) if email else None)
        if user_id:
            url = f"{self._users_url}{quote(user_id, safe='')}"
            params = None
        elif email:
            url = f"{self._users_url}{quote(email, safe='')}"
            params = {"idProperty": "EMAIL"}
        else:
            raise ExternalIdentityNotFoundError("HubSpot user not found")

        await self._request("DELETE", url, expected=(200, 204), params=params)
        return DeprovisionResult(success=True, message="HubSpot user removed")
