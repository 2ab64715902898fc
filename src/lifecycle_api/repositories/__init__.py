"""Repositories package."""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from lifecycle_api.repositories.app_account_repository import AppAccountRepository
from lifecycle_api.repositories.audit_repository import AuditRepository
from lifecycle_api.repositories.base import BaseRepository
from lifecycle_api.repositories.employee_repository import EmployeeRepository
from lifecycle_api.repositories.integration_repository import (
    ConnectionRepository,
    IntegrationRepository,
    ProvisioningRuleRepository,
)
from lifecycle_api.repositories.offboarding_repository import (
    OffboardingTaskRepository,
    OffboardingTemplateRepository,
    OffboardingWorkflowRepository,
)


@dataclass
class Repositories:
    """Every repository a service needs, bound to one unit of work.

    Services receive this container rather than a session so tests can
    substitute in-memory implementations.
    """

    employees: EmployeeRepository
    integrations: IntegrationRepository
    connections: ConnectionRepository
    rules: ProvisioningRuleRepository
    accounts: AppAccountRepository
    workflows: OffboardingWorkflowRepository
    tasks: OffboardingTaskRepository
    templates: OffboardingTemplateRepository
    audit: AuditRepository

    @classmethod
    def from_session(cls, session: AsyncSession) -> "Repositories":
        """Build SQLAlchemy-backed repositories sharing one session."""
        return cls(
            employees=EmployeeRepository(session),
            integrations=IntegrationRepository(session),
            connections=ConnectionRepository(session),
            rules=ProvisioningRuleRepository(session),
            accounts=AppAccountRepository(session),
            workflows=OffboardingWorkflowRepository(session),
            tasks=OffboardingTaskRepository(session),
            templates=OffboardingTemplateRepository(session),
            audit=AuditRepository(session),
        )


__all__ = [
    "AppAccountRepository",
    "AuditRepository",
    "BaseRepository",
    "ConnectionRepository",
    "EmployeeRepository",
    "IntegrationRepository",
    "OffboardingTaskRepository",
    "OffboardingTemplateRepository",
    "OffboardingWorkflowRepository",
    "ProvisioningRuleRepository",
    "Repositories",
]
