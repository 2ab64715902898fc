"""Offboarding workflow, task and template repositories."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select

from lifecycle_api.models.domain.offboarding import (
    ACTIVE_WORKFLOW_STATUSES,
    OPEN_TASK_STATUSES,
    OffboardingTask,
    OffboardingTaskTemplate,
    OffboardingWorkflow,
    WorkflowStatus,
)
from lifecycle_api.models.orm.offboarding import (
    OffboardingTaskORM,
    OffboardingTaskTemplateORM,
    OffboardingWorkflowORM,
)
from lifecycle_api.repositories.base import BaseRepository


class OffboardingWorkflowRepository(BaseRepository[OffboardingWorkflowORM, OffboardingWorkflow]):
    """Repository for offboarding workflows."""

    model = OffboardingWorkflowORM
    schema = OffboardingWorkflow

    async def get_active_for_employee(self, employee_id: UUID) -> OffboardingWorkflow | None:
        """Get the employee's pending or running workflow, if any."""
        result = await self.session.execute(
            select(OffboardingWorkflowORM)
            .where(
                OffboardingWorkflowORM.employee_id == employee_id,
                OffboardingWorkflowORM.status.in_([str(s) for s in ACTIVE_WORKFLOW_STATUSES]),
            )
            .order_by(OffboardingWorkflowORM.created_at.desc())
            .limit(1)
        )
        return self._to_domain(result.scalar_one_or_none())

    async def list_due(self, cutoff: datetime) -> list[OffboardingWorkflow]:
        """List pending workflows scheduled on or before ``cutoff``."""
        result = await self.session.execute(
            select(OffboardingWorkflowORM)
            .where(
                OffboardingWorkflowORM.status == str(WorkflowStatus.PENDING),
                OffboardingWorkflowORM.scheduled_for <= cutoff,
            )
            .order_by(OffboardingWorkflowORM.scheduled_for)
        )
        return [OffboardingWorkflow.model_validate(row) for row in result.scalars().all()]


class OffboardingTaskRepository(BaseRepository[OffboardingTaskORM, OffboardingTask]):
    """Repository for offboarding tasks."""

    model = OffboardingTaskORM
    schema = OffboardingTask

    async def list_for_workflow(self, workflow_id: UUID) -> list[OffboardingTask]:
        """List a workflow's tasks in sort order."""
        result = await self.session.execute(
            select(OffboardingTaskORM)
            .where(OffboardingTaskORM.workflow_id == workflow_id)
            .order_by(OffboardingTaskORM.sort_order)
        )
        return [OffboardingTask.model_validate(row) for row in result.scalars().all()]

    async def count_open(self, workflow_id: UUID) -> int:
        """Count tasks still PENDING or IN_PROGRESS."""
        result = await self.session.execute(
            select(func.count())
            .select_from(OffboardingTaskORM)
            .where(
                OffboardingTaskORM.workflow_id == workflow_id,
                OffboardingTaskORM.status.in_([str(s) for s in OPEN_TASK_STATUSES]),
            )
        )
        return result.scalar_one()


class OffboardingTemplateRepository(
    BaseRepository[OffboardingTaskTemplateORM, OffboardingTaskTemplate]
):
    """Repository for offboarding task templates."""

    model = OffboardingTaskTemplateORM
    schema = OffboardingTaskTemplate

    async def list_ordered(self, active_only: bool = False) -> list[OffboardingTaskTemplate]:
        """List templates in sort order."""
        query = select(OffboardingTaskTemplateORM)
        if active_only:
            query = query.where(OffboardingTaskTemplateORM.is_active.is_(True))
        result = await self.session.execute(
            query.order_by(OffboardingTaskTemplateORM.sort_order, OffboardingTaskTemplateORM.created_at)
        )
        return [OffboardingTaskTemplate.model_validate(row) for row in result.scalars().all()]
