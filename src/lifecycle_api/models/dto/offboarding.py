"""Offboarding DTOs."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from lifecycle_api.models.domain.account import DeprovisionOptions
from lifecycle_api.models.domain.offboarding import (
    OffboardingTask,
    OffboardingTaskTemplate,
    OffboardingWorkflow,
    TaskStatus,
)


class StartOffboardingRequest(BaseModel):
    """Start an offboarding workflow for an employee."""

    employee_id: UUID
    end_date: datetime | None = None
    is_immediate: bool = False
    reason: str | None = Field(default=None, max_length=2000)
    notes: str | None = Field(default=None, max_length=5000)
    actor_id: UUID | None = None
    # Directory exit options
    delete_account: bool = False
    transfer_to_email: str | None = Field(default=None, max_length=255)
    transfer_apps: list[str] = Field(default_factory=list)
    alias_to_email: str | None = Field(default=None, max_length=255)

    def exit_options(self) -> DeprovisionOptions:
        """Exit options stored on the workflow and passed to connectors."""
        return DeprovisionOptions(
            delete_account=self.delete_account,
            transfer_to_email=(self.transfer_to_email or "").strip() or None,
            transfer_apps=self.transfer_apps,
            alias_to_email=(self.alias_to_email or "").strip() or None,
        )


class CompleteTaskRequest(BaseModel):
    """Mark a manual task done."""

    notes: str | None = Field(default=None, max_length=2000)
    actor_id: UUID | None = None


class SkipTaskRequest(BaseModel):
    """Skip a task. A reason is required."""

    reason: str = Field(min_length=1, max_length=2000)
    actor_id: UUID | None = None


class RunTaskRequest(BaseModel):
    """Run an automated task."""

    actor_id: UUID | None = None


class CancelWorkflowRequest(BaseModel):
    """Cancel a workflow."""

    actor_id: UUID | None = None


class TaskRunResponse(BaseModel):
    """Outcome of running or completing a task."""

    success: bool
    status: TaskStatus
    error: str | None = None


class OffboardingWorkflowResponse(BaseModel):
    """Workflow with its tasks in sort order."""

    workflow: OffboardingWorkflow
    tasks: list[OffboardingTask]


class TaskTemplateCreate(BaseModel):
    """Create a task template."""

    kind: Literal["MANUAL", "INTEGRATION"]
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    integration_id: UUID | None = None

    @model_validator(mode="after")
    def require_integration(self) -> "TaskTemplateCreate":
        """Integration templates must name their integration."""
        if self.kind == "INTEGRATION" and self.integration_id is None:
            raise ValueError("Select an integration app")
        return self


class TaskTemplateUpdate(BaseModel):
    """Update a task template. Omitted fields are left unchanged."""

    kind: Literal["MANUAL", "INTEGRATION"] | None = None
    integration_id: UUID | None = None
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    is_active: bool | None = None


class TaskTemplateListResponse(BaseModel):
    """Task templates in sort order."""

    items: list[OffboardingTaskTemplate]
