"""Domain models package."""

from lifecycle_api.models.domain.account import (
    AccountStatus,
    AppAccount,
    ConnectionTestResult,
    DeprovisionOptions,
    DeprovisionResult,
    ProvisionResult,
)
from lifecycle_api.models.domain.employee import Employee, EmployeeStatus
from lifecycle_api.models.domain.integration import (
    Integration,
    IntegrationConnection,
    IntegrationType,
    ProvisioningRule,
)
from lifecycle_api.models.domain.offboarding import (
    AutomationKind,
    OffboardingTask,
    OffboardingTaskTemplate,
    OffboardingWorkflow,
    TaskStatus,
    TaskType,
    WorkflowStatus,
)

__all__ = [
    "AccountStatus",
    "AppAccount",
    "AutomationKind",
    "ConnectionTestResult",
    "DeprovisionOptions",
    "DeprovisionResult",
    "Employee",
    "EmployeeStatus",
    "Integration",
    "IntegrationConnection",
    "IntegrationType",
    "OffboardingTask",
    "OffboardingTaskTemplate",
    "OffboardingWorkflow",
    "ProvisionResult",
    "ProvisioningRule",
    "TaskStatus",
    "TaskType",
    "WorkflowStatus",
]
