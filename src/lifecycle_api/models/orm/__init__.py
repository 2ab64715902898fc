"""SQLAlchemy ORM models package."""

from lifecycle_api.models.orm.base import Base
from lifecycle_api.models.orm.employee import EmployeeORM
from lifecycle_api.models.orm.integration import IntegrationConnectionORM, IntegrationORM
from lifecycle_api.models.orm.provisioning_rule import ProvisioningRuleORM
from lifecycle_api.models.orm.app_account import AppAccountORM
from lifecycle_api.models.orm.offboarding import (
    OffboardingTaskORM,
    OffboardingTaskTemplateORM,
    OffboardingWorkflowORM,
)
from lifecycle_api.models.orm.audit_log import AuditLogORM

__all__ = [
    "Base",
    "EmployeeORM",
    "IntegrationORM",
    "IntegrationConnectionORM",
    "ProvisioningRuleORM",
    "AppAccountORM",
    "OffboardingWorkflowORM",
    "OffboardingTaskORM",
    "OffboardingTaskTemplateORM",
    "AuditLogORM",
]
