"""Account lifecycle orchestration across integrations.

Drives one provision or deprovision call against a connector and records the
resulting account status. Connector failures come back as result objects;
only unknown employees raise.
"""

import asyncio
import logging
from collections.abc import Awaitable
from datetime import UTC, datetime
from typing import Any, TypeVar
from uuid import UUID

import httpx

from lifecycle_api.config import Settings, get_settings
from lifecycle_api.exceptions import (
    ConfigurationError,
    ConnectorError,
    EmployeeNotFoundError,
    ProviderAPIError,
    TransientError,
)
from lifecycle_api.models.domain.account import (
    REVOKED_ACCOUNT_STATUSES,
    AccountStatus,
    DeprovisionOptions,
    DeprovisionResult,
    ProvisionResult,
)
from lifecycle_api.models.domain.employee import Employee
from lifecycle_api.models.domain.integration import Integration, IntegrationType
from lifecycle_api.providers.standup import StandupConnector
from lifecycle_api.repositories import Repositories
from lifecycle_api.services.audit_service import AuditAction, AuditService, ResourceType
from lifecycle_api.services.connector_service import ConnectorResolver
from lifecycle_api.utils.secure_logging import log_error, log_warning

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", ProvisionResult, DeprovisionResult)

PROVISION_AUDIT_ACTIONS = {
    IntegrationType.GOOGLE_WORKSPACE: AuditAction.GOOGLE_USER_CREATED,
    IntegrationType.SLACK: AuditAction.SLACK_USER_CREATED,
}

DEPROVISION_AUDIT_ACTIONS = {
    IntegrationType.GOOGLE_WORKSPACE: AuditAction.GOOGLE_USER_DISABLED,
    IntegrationType.SLACK: AuditAction.SLACK_USER_DISABLED,
}

NO_CONNECTOR_MESSAGE = "No connector available - marked as disabled"


def _failed(result_type: type[ResultT], error: ConnectorError) -> ResultT:
    return result_type.from_error(error)


def _keep_partial_resources(result: ProvisionResult) -> bool:
    """Whether a result's resources should replace the stored record.

    Failed attempts only overwrite the record when they applied something.
    """
    if result.provisioned_resources is None:
        return False
    if result.success:
        return True
    return any(result.provisioned_resources.values())


class AccountService:
    """Provisions and deprovisions employees in integrations."""

    def __init__(
        self,
        repos: Repositories,
        resolver: ConnectorResolver,
        settings: Settings | None = None,
    ) -> None:
        """Initialize service.

        Args:
            repos: Repositories bound to the current unit of work
            resolver: Builds connectors for integrations
            settings: Application settings
        """
        self.repos = repos
        self.resolver = resolver
        self.settings = settings or get_settings()
        self.audit_service = AuditService(repos.audit)

    async def _get_employee(self, employee_id: UUID) -> Employee:
        employee = await self.repos.employees.get_by_id(employee_id)
        if employee is None:
            raise EmployeeNotFoundError(employee_id)
        return employee

    async def _find_integration(
        self,
        integration_type: IntegrationType | None,
        integration_id: UUID | None,
    ) -> tuple[Integration | None, str | None]:
        """Look up an integration by id, or by type.

        Returns:
            Tuple of (integration, error message)
        """
        if integration_id is not None:
            integration = await self.repos.integrations.get_by_id(integration_id)
            if integration is None:
                return None, "App not found"
            if integration.is_archived:
                return None, "App is archived"
            return integration, None

        if integration_type is not None:
            integration = await self.repos.integrations.get_by_type(integration_type)
            if integration is None:
                return None, f"App {integration_type} is not configured"
            return integration, None

        return None, "Either an integration id or type is required"

    async def _call_connector(
        self,
        call: Awaitable[ResultT],
        result_type: type[ResultT],
        integration: Integration,
    ) -> ResultT:
        """Await a connector call, bounded by the per-call timeout.

        A timeout is reported as a retryable failure and any other exception
        a connector lets escape as a provider error, so the account never
        stays in PROVISIONING.
        """
        timeout = self.settings.connector_call_timeout_seconds
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except TimeoutError:
            error = TransientError(f"{integration.name} did not respond within {timeout:g} seconds")
            log_warning(logger, f"Connector call for {integration.name} timed out", error)
            return _failed(result_type, error)
        except Exception as e:
            log_error(logger, f"Connector call for {integration.name} failed unexpectedly", e)
            return _failed(
                result_type, ProviderAPIError(f"{integration.name} returned an unexpected response")
            )

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    async def provision_employee(
        self,
        employee_id: UUID,
        integration_type: IntegrationType | None = None,
        integration_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> ProvisionResult:
        """Provision an employee in an integration given by id or type.

        Args:
            employee_id: Employee UUID
            integration_type: Integration type (first non-archived one is used)
            integration_id: Integration UUID, takes precedence over the type
            actor_id: User triggering the call, None for the system

        Returns:
            ProvisionResult

        Raises:
            EmployeeNotFoundError: If the employee does not exist
        """
        employee = await self._get_employee(employee_id)
        integration, error = await self._find_integration(integration_type, integration_id)
        if integration is None:
            return _failed(ProvisionResult, ConfigurationError(error or "App not found"))
        return await self.provision_in_integration(employee, integration, actor_id)

    async def provision_in_integration(
        self,
        employee: Employee,
        integration: Integration,
        actor_id: UUID | None = None,
    ) -> ProvisionResult:
        """Provision an employee in one integration and record the account.

        Args:
            employee: Employee to provision
            integration: Target integration
            actor_id: User triggering the call

        Returns:
            ProvisionResult
        """
        if not integration.is_enabled:
            return _failed(
                ProvisionResult, ConfigurationError(f"App {integration.name} is not enabled")
            )

        connector = await self.resolver.resolve(integration)
        if connector is None:
            return _failed(
                ProvisionResult, ConfigurationError(f"No active connection for {integration.name}")
            )

        rules = await self.repos.rules.get_active_for_integration(integration.id)
        existing = await self.repos.accounts.get_for_employee(employee.id, integration.id)
        account = await self.repos.accounts.upsert(
            employee.id,
            integration.id,
            status=AccountStatus.PROVISIONING,
            status_message=None,
        )

        result = await self._call_connector(
            connector.provision_employee(employee, integration, rules, existing),
            ProvisionResult,
            integration,
        )

        now = datetime.now(UTC)
        if not result.success:
            status = AccountStatus.FAILED
        elif integration.type == IntegrationType.SLACK and not result.external_user_id:
            # Invite sent, acceptance outstanding
            status = AccountStatus.PENDING
        else:
            status = AccountStatus.ACTIVE

        fields: dict[str, Any] = {
            "status": status,
            "status_message": result.error or result.message,
            "last_sync_at": now,
        }
        for name in ("external_user_id", "external_email", "external_username"):
            value = getattr(result, name)
            if value is not None:
                fields[name] = value
        if _keep_partial_resources(result):
            fields["provisioned_resources"] = result.provisioned_resources
        if result.success:
            fields["provisioned_at"] = now

        account = await self.repos.accounts.update(account.id, **fields) or account

        if (
            result.success
            and integration.type == IntegrationType.GOOGLE_WORKSPACE
            and result.external_email
            and result.external_email != employee.work_email
        ):
            await self.repos.employees.update(employee.id, work_email=result.external_email)

        await self.audit_service.log(
            action=PROVISION_AUDIT_ACTIONS.get(integration.type, AuditAction.APP_ACCOUNT_PROVISIONED),
            resource_type=ResourceType.APP_ACCOUNT,
            resource_id=account.id,
            actor_id=actor_id,
            details={
                "app": str(integration.type),
                "app_id": str(integration.id),
                "employee_id": str(employee.id),
                "success": result.success,
                "error": result.error,
                "external_user_id": result.external_user_id,
                "external_email": result.external_email,
            },
        )

        if result.success:
            logger.info("Provisioned employee %s in %s (%s)", employee.id, integration.name, status)
        return result

    # ------------------------------------------------------------------
    # Deprovisioning
    # ------------------------------------------------------------------

    async def deprovision_employee(
        self,
        employee_id: UUID,
        integration_type: IntegrationType | None = None,
        integration_id: UUID | None = None,
        actor_id: UUID | None = None,
        options: DeprovisionOptions | None = None,
    ) -> DeprovisionResult:
        """Deprovision an employee from an integration given by id or type.

        Args:
            employee_id: Employee UUID
            integration_type: Integration type
            integration_id: Integration UUID, takes precedence over the type
            actor_id: User triggering the call
            options: Exit options passed through to the connector

        Returns:
            DeprovisionResult

        Raises:
            EmployeeNotFoundError: If the employee does not exist
        """
        employee = await self._get_employee(employee_id)
        integration, error = await self._find_integration(integration_type, integration_id)
        if integration is None:
            return _failed(DeprovisionResult, ConfigurationError(error or "App not found"))
        return await self.deprovision_in_integration(employee, integration, actor_id, options)

    async def deprovision_in_integration(
        self,
        employee: Employee,
        integration: Integration,
        actor_id: UUID | None = None,
        options: DeprovisionOptions | None = None,
    ) -> DeprovisionResult:
        """Revoke an employee's account in one integration.

        Archived integrations are rejected. Missing and already revoked
        accounts succeed without calling the provider. Without a connector the
        account is marked DISABLED.

        Args:
            employee: Employee to deprovision
            integration: Target integration
            actor_id: User triggering the call
            options: Exit options

        Returns:
            DeprovisionResult
        """
        if integration.is_archived:
            return _failed(DeprovisionResult, ConfigurationError("App is archived"))

        account = await self.repos.accounts.get_for_employee(employee.id, integration.id)
        if account is None:
            return DeprovisionResult(success=True, message="No account to deprovision")

        if account.status in REVOKED_ACCOUNT_STATUSES:
            return DeprovisionResult(success=True, message="Account already deprovisioned")

        now = datetime.now(UTC)
        connector = await self.resolver.resolve(integration)
        if connector is None:
            await self.repos.accounts.update(
                account.id,
                status=AccountStatus.DISABLED,
                status_message=NO_CONNECTOR_MESSAGE,
                deprovisioned_at=now,
            )
            logger.info(
                "No connector for %s, account %s marked disabled", integration.name, account.id
            )
            return DeprovisionResult(success=True, message=NO_CONNECTOR_MESSAGE)

        result = await self._call_connector(
            connector.deprovision_employee(employee, integration, account, options),
            DeprovisionResult,
            integration,
        )

        fields: dict[str, Any] = {
            "status": AccountStatus.DEPROVISIONED if result.success else AccountStatus.FAILED,
            "status_message": result.error or result.message,
            "last_sync_at": now,
        }
        if result.success:
            fields["deprovisioned_at"] = now
        await self.repos.accounts.update(account.id, **fields)

        await self.audit_service.log(
            action=DEPROVISION_AUDIT_ACTIONS.get(
                integration.type, AuditAction.APP_ACCOUNT_DEPROVISIONED
            ),
            resource_type=ResourceType.APP_ACCOUNT,
            resource_id=account.id,
            actor_id=actor_id,
            details={
                "app": str(integration.type),
                "app_id": str(integration.id),
                "employee_id": str(employee.id),
                "success": result.success,
                "error": result.error,
            },
        )
        return result

    async def deprovision_from_all(
        self,
        employee_id: UUID,
        actor_id: UUID | None = None,
        options: DeprovisionOptions | None = None,
    ) -> dict[str, DeprovisionResult]:
        """Deprovision an employee from every integration with a live account.

        Args:
            employee_id: Employee UUID
            actor_id: User triggering the call
            options: Exit options passed to every connector

        Returns:
            Results keyed by integration id
        """
        employee = await self._get_employee(employee_id)
        results: dict[str, DeprovisionResult] = {}

        for account in await self.repos.accounts.list_live_for_employee(employee.id):
            integration = await self.repos.integrations.get_by_id(account.integration_id)
            if integration is None:
                results[str(account.integration_id)] = _failed(
                    DeprovisionResult, ConfigurationError("App not found")
                )
                continue
            results[str(integration.id)] = await self.deprovision_in_integration(
                employee, integration, actor_id, options
            )

        return results

    async def remove_from_standup(self, employee: Employee) -> DeprovisionResult:
        """Remove an employee from every standup team.

        Succeeds without calling anything when no standup integration is
        enabled and configured.

        Args:
            employee: Employee leaving

        Returns:
            DeprovisionResult
        """
        email = employee.primary_email
        if not email:
            return _failed(DeprovisionResult, ConfigurationError("Employee has no email"))

        integration = await self.repos.integrations.get_by_type(IntegrationType.STANDUPNINJA)
        if integration is None or not integration.is_enabled:
            return DeprovisionResult(success=True, message="Standup sync disabled")

        connector = await self.resolver.resolve(integration)
        if not isinstance(connector, StandupConnector):
            return DeprovisionResult(success=True, message="Standup sync disabled")

        try:
            return await asyncio.wait_for(
                connector.remove_member(email),
                timeout=self.settings.connector_call_timeout_seconds,
            )
        except TimeoutError:
            return _failed(DeprovisionResult, TransientError("StandupNinja did not respond in time"))
        except (ConnectorError, httpx.HTTPError) as e:
            log_warning(logger, "Failed to remove employee from standup teams", e)
            if isinstance(e, ConnectorError):
                return _failed(DeprovisionResult, e)
            return _failed(DeprovisionResult, TransientError(f"Request failed: {type(e).__name__}"))
