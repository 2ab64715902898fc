"""Offboarding domain models."""

from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from lifecycle_api.models.domain.integration import IntegrationType


class WorkflowStatus(StrEnum):
    """Offboarding workflow status enum."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_WORKFLOW_STATUSES = (WorkflowStatus.PENDING, WorkflowStatus.IN_PROGRESS)


class TaskType(StrEnum):
    """Offboarding task type enum."""

    MANUAL = "manual"
    AUTOMATED = "automated"


class TaskStatus(StrEnum):
    """Offboarding task status enum.

    FAILED is retryable; SUCCESS and SKIPPED are terminal.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


OPEN_TASK_STATUSES = (TaskStatus.PENDING, TaskStatus.IN_PROGRESS)
TERMINAL_TASK_STATUSES = (TaskStatus.SUCCESS, TaskStatus.SKIPPED)


class AutomationKind(StrEnum):
    """Deprovisioning action an automated task performs."""

    DEPROVISION_APP = "deprovision_app"
    DEPROVISION_STANDUP = "deprovision_standupninja"
    # Kinds written by older templates, dispatched by integration type
    DEPROVISION_GOOGLE_WORKSPACE = "deprovision_google_workspace"
    DEPROVISION_SLACK = "deprovision_slack"


class OffboardingWorkflow(BaseModel):
    """Offboarding workflow domain model."""

    id: UUID
    employee_id: UUID
    status: WorkflowStatus
    is_immediate: bool = False
    scheduled_for: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    reason: str | None = None
    notes: str | None = None
    initiated_by: UUID | None = None
    exit_options: dict[str, Any] | None = None

    class Config:
        """Pydantic config."""

        from_attributes = True


class OffboardingTask(BaseModel):
    """Offboarding task domain model."""

    id: UUID
    workflow_id: UUID
    name: str
    description: str | None = None
    type: TaskType
    automation_type: str | None = None
    integration_id: UUID | None = None
    status: TaskStatus
    status_message: str | None = None
    attempts: int = 0
    last_attempt_at: datetime | None = None
    completed_at: datetime | None = None
    completed_by: UUID | None = None
    notes: str | None = None
    sort_order: int = 0

    class Config:
        """Pydantic config."""

        from_attributes = True


class OffboardingTaskTemplate(BaseModel):
    """Offboarding task template domain model."""

    id: UUID
    name: str
    description: str | None = None
    type: TaskType
    automation_type: str | None = None
    integration_id: UUID | None = None
    integration_type: IntegrationType | None = None
    sort_order: int = 0
    is_active: bool = True

    class Config:
        """Pydantic config."""

        from_attributes = True
