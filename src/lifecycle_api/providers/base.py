"""Base connector interface."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, Generic, TypeVar

import httpx
import pydantic

from lifecycle_api.exceptions import (
    ConfigurationError,
    ConnectorError,
    PartialApplicationError,
    TransientError,
)
from lifecycle_api.models.domain.account import (
    AppAccount,
    ConnectionTestResult,
    DeprovisionOptions,
    DeprovisionResult,
    ProvisionResult,
)
from lifecycle_api.models.domain.employee import Employee
from lifecycle_api.models.domain.integration import Integration, ProvisioningRule
from lifecycle_api.providers.http import SharedHTTPClient
from lifecycle_api.utils.secure_logging import log_warning

logger = logging.getLogger(__name__)

ConfigT = TypeVar("ConfigT")


def _as_connector_error(error: Exception) -> ConnectorError:
    """Map library exceptions raised inside a connector onto the taxonomy."""
    if isinstance(error, ConnectorError):
        return error
    if isinstance(error, pydantic.ValidationError):
        return ConfigurationError(f"Invalid provisioning data: {error.error_count()} error(s)")
    return TransientError(f"Request failed: {type(error).__name__}")


class BaseConnector(ABC, Generic[ConfigT]):
    """Abstract base class for provider connectors.

    Subclasses implement ``_provision``, ``_deprovision`` and ``_test_connection``
    and signal failures by raising ``ConnectorError`` subclasses. The public
    methods convert those into result objects so callers only ever see results.
    """

    provider_name = "Connector"

    def __init__(self, config: ConfigT, http_client: httpx.AsyncClient | None = None) -> None:
        """Initialize connector with a validated config.

        Args:
            config: Provider-specific connection config
            http_client: HTTP client, the shared pooled client when omitted
        """
        self.config = config
        self.http = http_client or SharedHTTPClient.get()

    async def provision_employee(
        self,
        employee: Employee,
        integration: Integration,
        rules: Sequence[ProvisioningRule],
        existing_account: AppAccount | None = None,
    ) -> ProvisionResult:
        """Create or reactivate the employee's account and apply rule grants.

        Args:
            employee: Employee to provision
            integration: Integration being provisioned
            rules: Integration's provisioning rules (any order)
            existing_account: Previously recorded account, if any

        Returns:
            ProvisionResult (never raises for provider failures)
        """
        try:
            return await self._provision(employee, integration, rules, existing_account)
        except PartialApplicationError as e:
            log_warning(logger, f"{self.provider_name} provisioning stopped part way", e)
            return ProvisionResult.from_error(
                e,
                external_user_id=e.external_user_id,
                external_email=e.external_email,
                provisioned_resources=e.applied,
            )
        except (ConnectorError, pydantic.ValidationError, httpx.HTTPError) as e:
            error = _as_connector_error(e)
            log_warning(logger, f"{self.provider_name} provisioning failed", error)
            return ProvisionResult.from_error(error)

    async def deprovision_employee(
        self,
        employee: Employee,
        integration: Integration,
        account: AppAccount,
        options: DeprovisionOptions | None = None,
    ) -> DeprovisionResult:
        """Revoke the employee's access.

        Args:
            employee: Employee to deprovision
            integration: Integration being deprovisioned
            account: Recorded account, including ``provisioned_resources``
            options: Exit options (data transfer, alias, deletion)

        Returns:
            DeprovisionResult (never raises for provider failures)
        """
        try:
            return await self._deprovision(
                employee, integration, account, options or DeprovisionOptions()
            )
        except (ConnectorError, pydantic.ValidationError, httpx.HTTPError) as e:
            error = _as_connector_error(e)
            log_warning(logger, f"{self.provider_name} deprovisioning failed", error)
            return DeprovisionResult.from_error(error)

    async def test_connection(self) -> ConnectionTestResult:
        """Check that the stored credentials work."""
        try:
            await self._test_connection()
        except (ConnectorError, httpx.HTTPError) as e:
            error = _as_connector_error(e)
            log_warning(logger, f"{self.provider_name} connection test failed", error)
            return ConnectionTestResult.from_error(error)
        return ConnectionTestResult(success=True)

    @abstractmethod
    async def _provision(
        self,
        employee: Employee,
        integration: Integration,
        rules: Sequence[ProvisioningRule],
        existing_account: AppAccount | None,
    ) -> ProvisionResult:
        pass

    @abstractmethod
    async def _deprovision(
        self,
        employee: Employee,
        integration: Integration,
        account: AppAccount,
        options: DeprovisionOptions,
    ) -> DeprovisionResult:
        pass

    @abstractmethod
    async def _test_connection(self) -> None:
        """Raise a ``ConnectorError`` when the connection does not work."""
        pass


def require_email(employee: Employee, provider: str) -> str:
    """Return the employee's primary email or raise ``ConfigurationError``."""
    email = employee.primary_email
    if not email:
        raise ConfigurationError(f"Employee has no email address for {provider}")
    return email


def recorded_list(account: AppAccount, key: str) -> list[Any]:
    """Read a list out of an account's ``provisioned_resources``."""
    value = (account.provisioned_resources or {}).get(key)
    return list(value) if isinstance(value, list) else []
