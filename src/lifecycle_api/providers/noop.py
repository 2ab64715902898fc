"""Connectors for systems without user provisioning."""

from collections.abc import Sequence

from lifecycle_api.exceptions import ConfigurationError
from lifecycle_api.models.domain.account import (
    AppAccount,
    DeprovisionOptions,
    DeprovisionResult,
    ProvisionResult,
)
from lifecycle_api.models.domain.employee import Employee
from lifecycle_api.models.domain.integration import Integration, ProvisioningRule
from lifecycle_api.providers.base import BaseConnector
from lifecycle_api.providers.http import parse_json, raise_for_provider_status, send_with_rate_limit

FIREFLIES_API_URL = "https://api.fireflies.ai/graphql"
WEBFLOW_API_BASE = "https://api.webflow.com/v2"


class NoopConnector(BaseConnector[object]):
    """Base for systems without per-employee accounts.

    Provisioning and deprovisioning succeed without calling anything. It is
    never resolved on its own: each system gets a subclass that names it and
    overrides ``_test_connection`` so credentials can still be checked.
    """

    provider_name = "This integration"

    async def _provision(
        self,
        employee: Employee,
        integration: Integration,
        rules: Sequence[ProvisioningRule],
        existing_account: AppAccount | None,
    ) -> ProvisionResult:
        return ProvisionResult(
            success=True,
            external_email=employee.primary_email,
            message=f"{self.provider_name} does not support user provisioning",
        )

    async def _deprovision(
        self,
        employee: Employee,
        integration: Integration,
        account: AppAccount,
        options: DeprovisionOptions,
    ) -> DeprovisionResult:
        return DeprovisionResult(
            success=True, message=f"{self.provider_name} does not support user deprovisioning"
        )

    async def _test_connection(self) -> None:
        return None


class FirefliesConnector(NoopConnector):
    """Meeting transcripts; accounts are managed by the meeting host."""

    provider_name = "Fireflies"

    async def _test_connection(self) -> None:
        response = await send_with_rate_limit(
            self.http,
            "POST",
            FIREFLIES_API_URL,
            headers={"Authorization": f"Bearer {self.config.api_key}"},
            json={"query": "query { user { id email } }"},
        )
        raise_for_provider_status(self.provider_name, response)
        errors = parse_json(response).get("errors")
        if errors:
            raise ConfigurationError(f"Fireflies API error: {errors[0].get('message', 'unknown')}")


class WebflowConnector(NoopConnector):
    """CMS publishing; no per-employee accounts."""

    provider_name = "Webflow"

    async def _test_connection(self) -> None:
        response = await send_with_rate_limit(
            self.http,
            "GET",
            f"{WEBFLOW_API_BASE}/sites",
            headers={"Authorization": f"Bearer {self.config.api_token}", "Accept": "application/json"},
        )
        raise_for_provider_status(self.provider_name, response)
        if not parse_json(response).get("sites"):
            raise ConfigurationError("No sites found. Check your API token permissions.")
