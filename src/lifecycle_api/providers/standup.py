"""Standup tool connector."""

import logging
from collections.abc import Sequence

from lifecycle_api.exceptions import ConfigurationError
from lifecycle_api.models.domain.account import (
    AppAccount,
    DeprovisionOptions,
    DeprovisionResult,
    ProvisionResult,
)
from lifecycle_api.models.domain.connection_config import StandupConfig
from lifecycle_api.models.domain.employee import Employee
from lifecycle_api.models.domain.integration import Integration, ProvisioningRule
from lifecycle_api.providers.base import BaseConnector
from lifecycle_api.providers.http import raise_for_provider_status, send_with_rate_limit

logger = logging.getLogger(__name__)


class StandupConnector(BaseConnector[StandupConfig]):
    """Standup team membership.

    Team membership is synced separately from the generic provisioning
    engine, so provision and deprovision only explain that. Offboarding
    removes members through ``remove_member``.
    """

    provider_name = "StandupNinja"

    @property
    def _api_url(self) -> str:
        return self.config.api_url.rstrip("/")

    async def _test_connection(self) -> None:
        response = await send_with_rate_limit(
            self.http,
            "GET",
            f"{self._api_url}/api/health",
            headers={"X-API-Key": self.config.api_key},
        )
        raise_for_provider_status(self.provider_name, response)

    async def remove_member(self, email: str) -> DeprovisionResult:
        """Remove an email from every standup team.

        Args:
            email: Employee email

        Returns:
            DeprovisionResult
        """
        response = await send_with_rate_limit(
            self.http,
            "DELETE",
            f"{self._api_url}/api/teams/members",
            headers={"X-API-Key": self.config.api_key, "Content-Type": "application/json"},
            json={"email": email},
        )
        raise_for_provider_status(self.provider_name, response)
        logger.info("Removed employee from standup teams")
        return DeprovisionResult(success=True, message="Removed from standup teams")

    async def _provision(
        self,
        employee: Employee,
        integration: Integration,
        rules: Sequence[ProvisioningRule],
        existing_account: AppAccount | None,
    ) -> ProvisionResult:
        raise ConfigurationError(
            "StandupNinja provisioning is handled via Standup Sync, "
            "not the generic integrations engine."
        )

    async def _deprovision(
        self,
        employee: Employee,
        integration: Integration,
        account: AppAccount,
        options: DeprovisionOptions,
    ) -> DeprovisionResult:
        raise ConfigurationError(
            "StandupNinja deprovisioning is handled via Standup Sync, "
            "not the generic integrations engine."
        )
