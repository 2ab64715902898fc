"""Offboarding workflow service.

A workflow is a flat, ordered list of tasks built from the organization's
task templates. Automated tasks deprovision through ``AccountService``;
manual tasks are acknowledged by a person. The workflow completes as soon as
no task is PENDING or IN_PROGRESS.
"""

import logging
from datetime import UTC, datetime
from typing import Any, Literal, NamedTuple
from uuid import UUID

from lifecycle_api.exceptions import (
    ActiveWorkflowExistsError,
    EmployeeAlreadyExitedError,
    EmployeeNotFoundError,
    IntegrationNotFoundError,
    InvalidTaskTypeError,
    TaskAlreadyFinishedError,
    TaskNotFoundError,
    TemplateNotFoundError,
    ValidationError,
    WorkflowCompletedError,
    WorkflowNotFoundError,
)
from lifecycle_api.models.domain.account import (
    AccountStatus,
    DeprovisionOptions,
    DeprovisionResult,
)
from lifecycle_api.models.domain.employee import Employee, EmployeeStatus
from lifecycle_api.models.domain.integration import Integration, IntegrationType
from lifecycle_api.models.domain.offboarding import (
    ACTIVE_WORKFLOW_STATUSES,
    TERMINAL_TASK_STATUSES,
    AutomationKind,
    OffboardingTask,
    OffboardingTaskTemplate,
    OffboardingWorkflow,
    TaskStatus,
    TaskType,
    WorkflowStatus,
)
from lifecycle_api.models.dto.offboarding import (
    OffboardingWorkflowResponse,
    StartOffboardingRequest,
    TaskRunResponse,
    TaskTemplateCreate,
    TaskTemplateUpdate,
)
from lifecycle_api.repositories import Repositories
from lifecycle_api.services.account_service import AccountService
from lifecycle_api.services.audit_service import AuditAction, AuditService, ResourceType
from lifecycle_api.utils.secure_logging import log_error

logger = logging.getLogger(__name__)


class DefaultTemplate(NamedTuple):
    """Template seeded for organizations without any."""

    name: str
    type: TaskType
    sort_order: int
    integration_type: IntegrationType | None = None


DEFAULT_TASK_TEMPLATES = (
    DefaultTemplate("Collect company equipment", TaskType.MANUAL, 1),
    DefaultTemplate("Revoke building/office access", TaskType.MANUAL, 2),
    DefaultTemplate("Transfer files and documents", TaskType.MANUAL, 3),
    DefaultTemplate("Exit interview", TaskType.MANUAL, 4),
    DefaultTemplate(
        "Deprovision Google Workspace account",
        TaskType.AUTOMATED,
        10,
        IntegrationType.GOOGLE_WORKSPACE,
    ),
    DefaultTemplate("Deprovision Slack account", TaskType.AUTOMATED, 11, IntegrationType.SLACK),
    DefaultTemplate(
        "Remove from StandupNinja teams",
        TaskType.AUTOMATED,
        12,
        IntegrationType.STANDUPNINJA,
    ),
)

# Automation kinds that name an integration type instead of an integration
LEGACY_KIND_TYPES = {
    AutomationKind.DEPROVISION_GOOGLE_WORKSPACE: IntegrationType.GOOGLE_WORKSPACE,
    AutomationKind.DEPROVISION_SLACK: IntegrationType.SLACK,
}

DEPROVISION_PREFIX = "deprovision_"


def automation_kind_for(integration: Integration) -> AutomationKind:
    """Automation kind used for tasks targeting an integration."""
    if integration.type == IntegrationType.STANDUPNINJA:
        return AutomationKind.DEPROVISION_STANDUP
    return AutomationKind.DEPROVISION_APP


def _failed(message: str) -> DeprovisionResult:
    return DeprovisionResult(success=False, error=message, error_kind="configuration")


class OffboardingService:
    """Service for offboarding workflows, tasks and task templates."""

    def __init__(self, repos: Repositories, accounts: AccountService) -> None:
        """Initialize service.

        Args:
            repos: Repositories bound to the current unit of work
            accounts: Account lifecycle service used by automated tasks
        """
        self.repos = repos
        self.accounts = accounts
        self.audit_service = AuditService(repos.audit)

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    async def ensure_default_templates(self) -> None:
        """Seed the default templates when none exist."""
        if await self.repos.templates.count() > 0:
            return

        for default in DEFAULT_TASK_TEMPLATES:
            automated = default.type == TaskType.AUTOMATED
            await self.repos.templates.create(
                name=default.name,
                description=None,
                type=default.type,
                automation_type=AutomationKind.DEPROVISION_APP if automated else None,
                integration_type=default.integration_type,
                sort_order=default.sort_order,
                is_active=True,
            )
        logger.info("Seeded %d default offboarding task templates", len(DEFAULT_TASK_TEMPLATES))

    async def list_templates(self) -> list[OffboardingTaskTemplate]:
        """List all templates in sort order, seeding defaults first."""
        await self.ensure_default_templates()
        return await self.repos.templates.list_ordered()

    async def _get_template(self, template_id: UUID) -> OffboardingTaskTemplate:
        template = await self.repos.templates.get_by_id(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    async def _get_integration(self, integration_id: UUID) -> Integration:
        integration = await self.repos.integrations.get_by_id(integration_id)
        if integration is None:
            raise IntegrationNotFoundError(integration_id)
        return integration

    @staticmethod
    def _integration_fields(integration: Integration | None) -> dict[str, Any]:
        """Template columns for a manual (None) or integration template."""
        if integration is None:
            return {
                "type": TaskType.MANUAL,
                "integration_id": None,
                "integration_type": None,
                "automation_type": None,
            }
        return {
            "type": TaskType.AUTOMATED,
            "integration_id": integration.id,
            "integration_type": integration.type,
            "automation_type": automation_kind_for(integration),
        }

    async def create_template(self, data: TaskTemplateCreate) -> OffboardingTaskTemplate:
        """Append a template after the current last one.

        Args:
            data: Template data

        Returns:
            Created template

        Raises:
            IntegrationNotFoundError: If the integration does not exist
        """
        templates = await self.list_templates()
        integration = (
            await self._get_integration(data.integration_id)
            if data.kind == "INTEGRATION" and data.integration_id
            else None
        )
        next_sort = max((t.sort_order for t in templates), default=0) + 1
        description = (data.description or "").strip() or None

        return await self.repos.templates.create(
            name=data.name,
            description=description,
            sort_order=next_sort,
            is_active=True,
            **self._integration_fields(integration),
        )

    async def update_template(
        self, template_id: UUID, data: TaskTemplateUpdate
    ) -> OffboardingTaskTemplate:
        """Update a template.

        Switching to an integration template requires ``integration_id``.
        """
        await self.ensure_default_templates()
        await self._get_template(template_id)

        updates: dict[str, Any] = {}
        if data.kind == "MANUAL":
            updates.update(self._integration_fields(None))
        elif data.kind == "INTEGRATION":
            if data.integration_id is None:
                raise ValidationError("Select an integration app")
            updates.update(self._integration_fields(await self._get_integration(data.integration_id)))

        fields = data.model_dump(exclude_unset=True)
        if data.name:
            updates["name"] = data.name
        if "description" in fields:
            updates["description"] = (data.description or "").strip() or None
        if data.is_active is not None:
            updates["is_active"] = data.is_active

        template = await self.repos.templates.update(template_id, **updates)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    async def _renumber_templates(self) -> list[OffboardingTaskTemplate]:
        """Rewrite sort orders as 1..n, keeping the current order."""
        templates = await self.repos.templates.list_ordered()
        renumbered = []
        for position, template in enumerate(templates, start=1):
            if template.sort_order != position:
                template = await self.repos.templates.update(template.id, sort_order=position) or template
            renumbered.append(template)
        return renumbered

    async def delete_template(self, template_id: UUID) -> None:
        """Delete a template and close the gap in sort orders."""
        await self.ensure_default_templates()
        if not await self.repos.templates.delete(template_id):
            raise TemplateNotFoundError(template_id)
        await self._renumber_templates()

    async def move_template(
        self, template_id: UUID, direction: Literal["UP", "DOWN"]
    ) -> list[OffboardingTaskTemplate]:
        """Swap a template with its neighbour.

        Args:
            template_id: Template to move
            direction: "UP" (earlier) or "DOWN" (later)

        Returns:
            All templates in their new order
        """
        templates = await self.list_templates()
        index = next((i for i, t in enumerate(templates) if t.id == template_id), None)
        if index is None:
            raise TemplateNotFoundError(template_id)

        neighbour_index = index - 1 if direction == "UP" else index + 1
        if not 0 <= neighbour_index < len(templates):
            return templates

        current, neighbour = templates[index], templates[neighbour_index]
        await self.repos.templates.update(current.id, sort_order=neighbour.sort_order)
        await self.repos.templates.update(neighbour.id, sort_order=current.sort_order)
        return await self.repos.templates.list_ordered()

    async def reset_templates(self) -> list[OffboardingTaskTemplate]:
        """Replace every template with the defaults."""
        for template in await self.repos.templates.list_ordered():
            await self.repos.templates.delete(template.id)
        return await self.list_templates()

    # ------------------------------------------------------------------
    # Workflow creation
    # ------------------------------------------------------------------

    async def _template_integration(self, template: OffboardingTaskTemplate) -> Integration | None:
        if template.integration_id is not None:
            return await self.repos.integrations.get_by_id(template.integration_id)
        if template.integration_type is not None:
            return await self.repos.integrations.get_by_type(template.integration_type)
        return None

    async def build_task_specs(self, employee: Employee) -> list[dict[str, Any]]:
        """Expand active templates into task field sets for one employee.

        Templates whose integration cannot be found are dropped. Every
        integration where the employee holds an ACTIVE account but which no
        template covers gets its own deprovisioning task at the end.

        Args:
            employee: Employee leaving

        Returns:
            Task fields in execution order, ``sort_order`` numbered from 1
        """
        specs: list[dict[str, Any]] = []
        covered: set[UUID] = set()

        for template in await self.repos.templates.list_ordered(active_only=True):
            if template.type == TaskType.MANUAL:
                specs.append({
                    "name": template.name,
                    "description": template.description,
                    "type": TaskType.MANUAL,
                })
                continue

            integration = await self._template_integration(template)
            if integration is None:
                logger.info("Skipping template %s, its integration is not set up", template.name)
                continue

            kind = automation_kind_for(integration)
            if kind == AutomationKind.DEPROVISION_APP and template.automation_type:
                kind = template.automation_type
            covered.add(integration.id)
            specs.append({
                "name": template.name,
                "description": template.description,
                "type": TaskType.AUTOMATED,
                "automation_type": kind,
                "integration_id": integration.id,
            })

        accounts = await self.repos.accounts.list_for_employee(employee.id, [AccountStatus.ACTIVE])
        for account in accounts:
            if account.integration_id in covered:
                continue
            integration = await self.repos.integrations.get_by_id(account.integration_id)
            if integration is None:
                continue
            covered.add(integration.id)
            specs.append({
                "name": f"Deprovision {integration.name} account",
                "description": None,
                "type": TaskType.AUTOMATED,
                "automation_type": AutomationKind.DEPROVISION_APP,
                "integration_id": integration.id,
            })

        for position, spec in enumerate(specs, start=1):
            spec["sort_order"] = position
        return specs

    async def start_offboarding(
        self,
        employee_id: UUID,
        request: StartOffboardingRequest,
        actor_id: UUID | None = None,
    ) -> OffboardingWorkflowResponse:
        """Create an offboarding workflow and its tasks.

        Immediate workflows run every automated task right away; a failing
        task is recorded and does not stop the others.

        Args:
            employee_id: Employee leaving
            request: Exit parameters
            actor_id: User starting the workflow

        Returns:
            Workflow with its tasks

        Raises:
            EmployeeNotFoundError: If the employee does not exist
            EmployeeAlreadyExitedError: If the employee has already exited
            ActiveWorkflowExistsError: If a workflow is already pending or running
        """
        employee = await self.repos.employees.get_by_id(employee_id)
        if employee is None:
            raise EmployeeNotFoundError(employee_id)
        if employee.status == EmployeeStatus.EXITED:
            raise EmployeeAlreadyExitedError()
        if await self.repos.workflows.get_active_for_employee(employee_id) is not None:
            raise ActiveWorkflowExistsError(employee_id)

        await self.ensure_default_templates()
        specs = await self.build_task_specs(employee)

        now = datetime.now(UTC)
        scheduled_for = now if request.is_immediate else request.end_date
        workflow = await self.repos.workflows.create(
            employee_id=employee_id,
            status=WorkflowStatus.IN_PROGRESS if request.is_immediate else WorkflowStatus.PENDING,
            is_immediate=request.is_immediate,
            scheduled_for=scheduled_for,
            started_at=now if request.is_immediate else None,
            reason=request.reason,
            notes=request.notes,
            initiated_by=actor_id,
            exit_options=request.exit_options().model_dump(),
        )
        for spec in specs:
            await self.repos.tasks.create(workflow_id=workflow.id, status=TaskStatus.PENDING, **spec)

        await self.repos.employees.update(
            employee_id,
            status=EmployeeStatus.OFFBOARDING,
            end_date=scheduled_for.date() if scheduled_for else None,
        )

        await self.audit_service.log(
            action=AuditAction.OFFBOARDING_STARTED,
            resource_type=ResourceType.EMPLOYEE,
            resource_id=employee_id,
            actor_id=actor_id,
            details={
                "workflow_id": str(workflow.id),
                "is_immediate": request.is_immediate,
                "reason": request.reason,
                "task_count": len(specs),
            },
        )
        logger.info("Started offboarding %s for employee %s", workflow.id, employee_id)

        if request.is_immediate:
            await self.run_automated_tasks(workflow.id, actor_id)

        return await self.get_workflow(workflow.id)

    async def get_workflow(self, workflow_id: UUID) -> OffboardingWorkflowResponse:
        """Get a workflow with its tasks."""
        workflow = await self.repos.workflows.get_by_id(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        tasks = await self.repos.tasks.list_for_workflow(workflow_id)
        return OffboardingWorkflowResponse(workflow=workflow, tasks=tasks)

    # ------------------------------------------------------------------
    # Task execution
    # ------------------------------------------------------------------

    async def _get_task(self, task_id: UUID) -> OffboardingTask:
        task = await self.repos.tasks.get_by_id(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def _get_workflow(self, workflow_id: UUID) -> OffboardingWorkflow:
        workflow = await self.repos.workflows.get_by_id(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        return workflow

    async def _deprovision_by_type(
        self,
        employee: Employee,
        integration_type: IntegrationType,
        actor_id: UUID | None,
        options: DeprovisionOptions | None,
    ) -> DeprovisionResult:
        integration = await self.repos.integrations.get_by_type(integration_type)
        if integration is None:
            return _failed(f"App {integration_type} not found")
        return await self.accounts.deprovision_in_integration(employee, integration, actor_id, options)

    async def _dispatch(
        self,
        task: OffboardingTask,
        workflow: OffboardingWorkflow,
        employee: Employee,
        actor_id: UUID | None,
    ) -> DeprovisionResult:
        """Perform the deprovisioning action named by the task's automation kind."""
        kind = task.automation_type or ""
        options = DeprovisionOptions.model_validate(workflow.exit_options or {})

        if kind == AutomationKind.DEPROVISION_APP:
            if task.integration_id is None:
                return _failed("Missing integration for this task")
            integration = await self.repos.integrations.get_by_id(task.integration_id)
            if integration is None:
                return _failed("App not found")
            if integration.is_archived:
                return _failed("App is archived")
            return await self.accounts.deprovision_in_integration(
                employee, integration, actor_id, options
            )

        if kind == AutomationKind.DEPROVISION_STANDUP:
            return await self.accounts.remove_from_standup(employee)

        if kind in LEGACY_KIND_TYPES:
            integration_type = LEGACY_KIND_TYPES[AutomationKind(kind)]
            # Exit options only apply to the directory
            kind_options = options if integration_type == IntegrationType.GOOGLE_WORKSPACE else None
            return await self._deprovision_by_type(employee, integration_type, actor_id, kind_options)

        if kind.startswith(DEPROVISION_PREFIX):
            raw_type = kind[len(DEPROVISION_PREFIX):].lower()
            if raw_type in {t.value for t in IntegrationType}:
                integration = await self.repos.integrations.get_by_type(IntegrationType(raw_type))
                if integration is not None:
                    return await self.accounts.deprovision_in_integration(
                        employee, integration, actor_id
                    )

        return _failed(f"Unknown automation type: {kind or None}")

    async def run_automated_task(
        self, task_id: UUID, actor_id: UUID | None = None
    ) -> TaskRunResponse:
        """Run (or re-run) an automated task.

        Args:
            task_id: Task UUID
            actor_id: User running the task, None for the scheduler

        Returns:
            TaskRunResponse with the task's new status

        Raises:
            TaskNotFoundError: If the task does not exist
            InvalidTaskTypeError: If the task is manual
            TaskAlreadyFinishedError: If the task already succeeded or was skipped
        """
        task = await self._get_task(task_id)
        if task.type != TaskType.AUTOMATED:
            raise InvalidTaskTypeError("Use complete_manual_task for manual tasks")
        if task.status in TERMINAL_TASK_STATUSES:
            raise TaskAlreadyFinishedError(task.status)

        workflow = await self._get_workflow(task.workflow_id)
        if workflow.status == WorkflowStatus.CANCELLED:
            raise ValidationError("Offboarding workflow was cancelled")

        employee = await self.repos.employees.get_by_id(workflow.employee_id)
        if employee is None:
            raise EmployeeNotFoundError(workflow.employee_id)

        now = datetime.now(UTC)
        if workflow.status == WorkflowStatus.PENDING:
            # Running a task early starts the workflow
            workflow = await self.repos.workflows.update(
                workflow.id, status=WorkflowStatus.IN_PROGRESS, started_at=now
            ) or workflow

        await self.repos.tasks.update(
            task.id,
            status=TaskStatus.IN_PROGRESS,
            attempts=task.attempts + 1,
            last_attempt_at=now,
        )

        try:
            result = await self._dispatch(task, workflow, employee, actor_id)
        except Exception as e:
            await self.repos.tasks.update(
                task.id, status=TaskStatus.FAILED, status_message="Task failed unexpectedly"
            )
            log_error(logger, f"Offboarding task {task.id} failed unexpectedly", e)
            raise

        status = TaskStatus.SUCCESS if result.success else TaskStatus.FAILED
        await self.repos.tasks.update(
            task.id,
            status=status,
            status_message=result.error or result.message,
            completed_at=datetime.now(UTC) if result.success else None,
        )

        await self.audit_service.log(
            action=AuditAction.OFFBOARDING_TASK_COMPLETED,
            resource_type=ResourceType.OFFBOARDING_TASK,
            resource_id=task.id,
            actor_id=actor_id,
            details={
                "task_name": task.name,
                "automation_type": task.automation_type,
                "attempt": task.attempts + 1,
                "success": result.success,
                "error": result.error,
            },
        )

        await self.check_completion(workflow.id)
        return TaskRunResponse(success=result.success, status=status, error=result.error)

    async def run_automated_tasks(self, workflow_id: UUID, actor_id: UUID | None = None) -> None:
        """Run every unfinished automated task of a workflow in sort order.

        A failing task is logged and the remaining tasks still run.
        """
        for task in await self.repos.tasks.list_for_workflow(workflow_id):
            if task.type != TaskType.AUTOMATED or task.status in TERMINAL_TASK_STATUSES:
                continue
            try:
                await self.run_automated_task(task.id, actor_id)
            except Exception as e:
                log_error(logger, f"Failed to run offboarding task {task.id}", e)

        await self.check_completion(workflow_id)

    async def complete_manual_task(
        self,
        task_id: UUID,
        notes: str | None = None,
        actor_id: UUID | None = None,
    ) -> TaskRunResponse:
        """Mark a manual task as done.

        Raises:
            TaskNotFoundError: If the task does not exist
            InvalidTaskTypeError: If the task is automated
            TaskAlreadyFinishedError: If the task is already finished
        """
        task = await self._get_task(task_id)
        if task.type != TaskType.MANUAL:
            raise InvalidTaskTypeError("Use run_automated_task for automated tasks")
        if task.status in TERMINAL_TASK_STATUSES:
            raise TaskAlreadyFinishedError(task.status)

        await self.repos.tasks.update(
            task.id,
            status=TaskStatus.SUCCESS,
            status_message=notes,
            notes=notes,
            completed_at=datetime.now(UTC),
            completed_by=actor_id,
        )
        await self.audit_service.log(
            action=AuditAction.OFFBOARDING_TASK_COMPLETED,
            resource_type=ResourceType.OFFBOARDING_TASK,
            resource_id=task.id,
            actor_id=actor_id,
            details={"task_name": task.name, "manual": True},
        )

        await self.check_completion(task.workflow_id)
        return TaskRunResponse(success=True, status=TaskStatus.SUCCESS)

    async def skip_task(
        self,
        task_id: UUID,
        reason: str,
        actor_id: UUID | None = None,
    ) -> TaskRunResponse:
        """Skip a task with a reason. Works for both task types."""
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to skip a task")

        task = await self._get_task(task_id)
        if task.status in TERMINAL_TASK_STATUSES:
            raise TaskAlreadyFinishedError(task.status)

        await self.repos.tasks.update(
            task.id,
            status=TaskStatus.SKIPPED,
            status_message=reason.strip(),
            completed_at=datetime.now(UTC),
            completed_by=actor_id,
        )
        await self.audit_service.log(
            action=AuditAction.OFFBOARDING_TASK_SKIPPED,
            resource_type=ResourceType.OFFBOARDING_TASK,
            resource_id=task.id,
            actor_id=actor_id,
            details={"task_name": task.name, "reason": reason.strip()},
        )

        await self.check_completion(task.workflow_id)
        return TaskRunResponse(success=True, status=TaskStatus.SKIPPED)

    # ------------------------------------------------------------------
    # Workflow state
    # ------------------------------------------------------------------

    async def check_completion(self, workflow_id: UUID) -> bool:
        """Complete the workflow once no task is PENDING or IN_PROGRESS.

        Completion marks the employee EXITED.

        Returns:
            True if the workflow is (now) completed
        """
        workflow = await self.repos.workflows.get_by_id(workflow_id)
        if workflow is None:
            return False
        if workflow.status == WorkflowStatus.COMPLETED:
            return True
        if workflow.status not in ACTIVE_WORKFLOW_STATUSES:
            return False

        if await self.repos.tasks.count_open(workflow_id) > 0:
            return False

        await self.repos.workflows.update(
            workflow_id, status=WorkflowStatus.COMPLETED, completed_at=datetime.now(UTC)
        )
        await self.repos.employees.update(workflow.employee_id, status=EmployeeStatus.EXITED)
        await self.audit_service.log(
            action=AuditAction.OFFBOARDING_COMPLETED,
            resource_type=ResourceType.EMPLOYEE,
            resource_id=workflow.employee_id,
            details={"workflow_id": str(workflow_id)},
        )
        logger.info("Offboarding %s completed", workflow_id)
        return True

    async def cancel_workflow(
        self, workflow_id: UUID, actor_id: UUID | None = None
    ) -> OffboardingWorkflow:
        """Cancel a workflow and return the employee to ACTIVE.

        Raises:
            WorkflowNotFoundError: If the workflow does not exist
            WorkflowCompletedError: If the workflow already completed
        """
        workflow = await self._get_workflow(workflow_id)
        if workflow.status == WorkflowStatus.COMPLETED:
            raise WorkflowCompletedError()
        if workflow.status == WorkflowStatus.CANCELLED:
            return workflow

        updated = await self.repos.workflows.update(workflow_id, status=WorkflowStatus.CANCELLED)
        await self.repos.employees.update(
            workflow.employee_id, status=EmployeeStatus.ACTIVE, end_date=None
        )
        await self.audit_service.log(
            action=AuditAction.OFFBOARDING_CANCELLED,
            resource_type=ResourceType.OFFBOARDING_WORKFLOW,
            resource_id=workflow_id,
            actor_id=actor_id,
            details={"employee_id": str(workflow.employee_id)},
        )
        return updated or workflow

    async def process_scheduled(self, now: datetime | None = None) -> list[UUID]:
        """Start every pending workflow whose scheduled time has passed.

        Args:
            now: Cutoff, the current time when omitted

        Returns:
            IDs of the workflows started
        """
        cutoff = now or datetime.now(UTC)
        started = []
        for workflow in await self.repos.workflows.list_due(cutoff):
            await self.repos.workflows.update(
                workflow.id, status=WorkflowStatus.IN_PROGRESS, started_at=cutoff
            )
            await self.run_automated_tasks(workflow.id)
            started.append(workflow.id)

        if started:
            logger.info("Started %d scheduled offboarding workflow(s)", len(started))
        return started
