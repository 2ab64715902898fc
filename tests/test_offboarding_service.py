"""Tests for offboarding workflows, tasks and task templates."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from conftest import FakeConnector, FakeResolver, make_employee, make_integration
from lifecycle_api.exceptions import (
    ActiveWorkflowExistsError,
    EmployeeAlreadyExitedError,
    InvalidTaskTypeError,
    TaskAlreadyFinishedError,
    TemplateNotFoundError,
    ValidationError,
    WorkflowCompletedError,
)
from lifecycle_api.models.domain.account import AccountStatus, DeprovisionResult
from lifecycle_api.models.domain.employee import EmployeeStatus
from lifecycle_api.models.domain.integration import IntegrationType
from lifecycle_api.models.domain.offboarding import (
    AutomationKind,
    TaskStatus,
    TaskType,
    WorkflowStatus,
)
from lifecycle_api.models.dto.offboarding import (
    StartOffboardingRequest,
    TaskTemplateCreate,
    TaskTemplateUpdate,
)
from lifecycle_api.services.account_service import AccountService
from lifecycle_api.services.audit_service import AuditAction
from lifecycle_api.services.offboarding_service import DEFAULT_TASK_TEMPLATES, OffboardingService

MANUAL_DEFAULTS = [t.name for t in DEFAULT_TASK_TEMPLATES if t.type == TaskType.MANUAL]


@pytest.fixture
def employee(repos):
    return repos.employees.add(make_employee())


def _service(repos, settings, connectors=None) -> OffboardingService:
    return OffboardingService(repos, AccountService(repos, FakeResolver(connectors), settings))


def _with_slack_account(repos, employee, status=AccountStatus.ACTIVE):
    slack = repos.integrations.add(make_integration(IntegrationType.SLACK, name="Slack"))
    asyncio.run(repos.accounts.upsert(employee.id, slack.id, status=status))
    return slack


def _start(service, employee, **request):
    return asyncio.run(
        service.start_offboarding(
            employee.id, StartOffboardingRequest(employee_id=employee.id, **request)
        )
    )


def _complete_manual_tasks(service, tasks):
    for task in tasks:
        if task.type == TaskType.MANUAL:
            asyncio.run(service.complete_manual_task(task.id, notes="done"))


class TestStartOffboarding:
    def test_scheduled_workflow_waits(self, repos, settings, employee):
        service = _service(repos, settings)
        end_date = datetime(2026, 11, 30, 17, 0, tzinfo=UTC)

        response = _start(service, employee, end_date=end_date, reason="Resigned")

        assert response.workflow.status == WorkflowStatus.PENDING
        assert response.workflow.scheduled_for == end_date
        assert [task.name for task in response.tasks] == MANUAL_DEFAULTS
        assert [task.sort_order for task in response.tasks] == [1, 2, 3, 4]
        assert all(task.status == TaskStatus.PENDING for task in response.tasks)

        updated = asyncio.run(repos.employees.get_by_id(employee.id))
        assert updated.status == EmployeeStatus.OFFBOARDING
        assert updated.end_date == end_date.date()
        assert AuditAction.OFFBOARDING_STARTED in repos.audit.actions()

    def test_templates_expand_to_configured_integrations(self, repos, settings, employee):
        slack = _with_slack_account(repos, employee)
        jira = repos.integrations.add(make_integration(IntegrationType.JIRA, name="Jira"))
        asyncio.run(repos.accounts.upsert(employee.id, jira.id, status=AccountStatus.ACTIVE))

        response = _start(_service(repos, settings), employee)

        automated = [task for task in response.tasks if task.type == TaskType.AUTOMATED]
        assert [(task.name, task.integration_id) for task in automated] == [
            ("Deprovision Slack account", slack.id),
            ("Deprovision Jira account", jira.id),
        ]
        assert all(task.automation_type == AutomationKind.DEPROVISION_APP for task in automated)
        assert [task.sort_order for task in response.tasks] == list(range(1, 7))

    def test_immediate_runs_automated_tasks(self, repos, settings, employee):
        slack = _with_slack_account(repos, employee)
        connector = FakeConnector()
        service = _service(repos, settings, {slack.id: connector})

        response = _start(service, employee, is_immediate=True, transfer_to_email="boss@acme.test")

        assert response.workflow.status == WorkflowStatus.IN_PROGRESS
        assert response.workflow.started_at is not None
        slack_task = next(task for task in response.tasks if task.integration_id == slack.id)
        assert slack_task.status == TaskStatus.SUCCESS
        assert slack_task.attempts == 1
        assert connector.deprovision_calls[0]["options"].transfer_to_email == "boss@acme.test"
        account = asyncio.run(repos.accounts.get_for_employee(employee.id, slack.id))
        assert account.status == AccountStatus.DEPROVISIONED

    def test_exited_employee_rejected(self, repos, settings):
        employee = repos.employees.add(make_employee(status=EmployeeStatus.EXITED))
        with pytest.raises(EmployeeAlreadyExitedError):
            _start(_service(repos, settings), employee)

    def test_one_active_workflow_per_employee(self, repos, settings, employee):
        service = _service(repos, settings)
        _start(service, employee)
        with pytest.raises(ActiveWorkflowExistsError):
            _start(service, employee)


class TestTaskExecution:
    def test_workflow_completes_after_manual_and_automated_tasks(self, repos, settings, employee):
        slack = _with_slack_account(repos, employee)
        service = _service(repos, settings, {slack.id: FakeConnector()})
        response = _start(service, employee, is_immediate=True)

        _complete_manual_tasks(service, response.tasks)

        final = asyncio.run(service.get_workflow(response.workflow.id))
        assert final.workflow.status == WorkflowStatus.COMPLETED
        assert final.workflow.completed_at is not None
        assert asyncio.run(repos.employees.get_by_id(employee.id)).status == EmployeeStatus.EXITED
        assert AuditAction.OFFBOARDING_COMPLETED in repos.audit.actions()

    def test_failed_task_can_be_retried(self, repos, settings, employee):
        slack = _with_slack_account(repos, employee)
        connector = FakeConnector(deprovision_result=DeprovisionResult(success=False, error="denied"))
        service = _service(repos, settings, {slack.id: connector})
        response = _start(service, employee, is_immediate=True)
        task = next(task for task in response.tasks if task.integration_id == slack.id)

        failed = asyncio.run(repos.tasks.get_by_id(task.id))
        assert failed.status == TaskStatus.FAILED
        assert failed.status_message == "denied"

        connector.deprovision_result = DeprovisionResult(success=True)
        outcome = asyncio.run(service.run_automated_task(task.id))

        assert outcome.success is True
        assert outcome.status == TaskStatus.SUCCESS
        assert asyncio.run(repos.tasks.get_by_id(task.id)).attempts == 2

    def test_failed_tasks_do_not_block_completion(self, repos, settings, employee):
        slack = _with_slack_account(repos, employee)
        connector = FakeConnector(deprovision_result=DeprovisionResult(success=False, error="denied"))
        service = _service(repos, settings, {slack.id: connector})
        response = _start(service, employee, is_immediate=True)

        _complete_manual_tasks(service, response.tasks)

        workflow = asyncio.run(repos.workflows.get_by_id(response.workflow.id))
        assert workflow.status == WorkflowStatus.COMPLETED

    def test_running_a_task_starts_a_pending_workflow(self, repos, settings, employee):
        slack = _with_slack_account(repos, employee)
        service = _service(repos, settings, {slack.id: FakeConnector()})
        response = _start(service, employee, end_date=datetime.now(UTC) + timedelta(days=14))
        task = next(task for task in response.tasks if task.type == TaskType.AUTOMATED)

        asyncio.run(service.run_automated_task(task.id))

        workflow = asyncio.run(repos.workflows.get_by_id(response.workflow.id))
        assert workflow.status == WorkflowStatus.IN_PROGRESS
        assert workflow.started_at is not None

    def test_finished_tasks_cannot_run_again(self, repos, settings, employee):
        slack = _with_slack_account(repos, employee)
        service = _service(repos, settings, {slack.id: FakeConnector()})
        response = _start(service, employee, is_immediate=True)
        task = next(task for task in response.tasks if task.type == TaskType.AUTOMATED)

        with pytest.raises(TaskAlreadyFinishedError):
            asyncio.run(service.run_automated_task(task.id))

    def test_task_type_is_enforced(self, repos, settings, employee):
        slack = _with_slack_account(repos, employee)
        service = _service(repos, settings, {slack.id: FakeConnector()})
        response = _start(service, employee)
        manual = next(task for task in response.tasks if task.type == TaskType.MANUAL)
        automated = next(task for task in response.tasks if task.type == TaskType.AUTOMATED)

        with pytest.raises(InvalidTaskTypeError):
            asyncio.run(service.run_automated_task(manual.id))
        with pytest.raises(InvalidTaskTypeError):
            asyncio.run(service.complete_manual_task(automated.id))

    def test_skip_requires_reason(self, repos, settings, employee):
        service = _service(repos, settings)
        response = _start(service, employee)
        task = response.tasks[0]

        with pytest.raises(ValidationError):
            asyncio.run(service.skip_task(task.id, "   "))

        outcome = asyncio.run(service.skip_task(task.id, "Remote employee"))
        assert outcome.status == TaskStatus.SKIPPED
        skipped = asyncio.run(repos.tasks.get_by_id(task.id))
        assert skipped.status_message == "Remote employee"

    def test_skipping_every_task_completes_the_workflow(self, repos, settings, employee):
        service = _service(repos, settings)
        response = _start(service, employee)

        for task in response.tasks:
            asyncio.run(service.skip_task(task.id, "Not applicable"))

        workflow = asyncio.run(repos.workflows.get_by_id(response.workflow.id))
        assert workflow.status == WorkflowStatus.COMPLETED

    def test_unknown_automation_kind_fails_the_task(self, repos, settings, employee):
        service = _service(repos, settings)
        response = _start(service, employee)
        task = asyncio.run(
            repos.tasks.create(
                workflow_id=response.workflow.id,
                name="Mystery",
                type=TaskType.AUTOMATED,
                automation_type="archive_mailbox",
                status=TaskStatus.PENDING,
                sort_order=99,
            )
        )

        outcome = asyncio.run(service.run_automated_task(task.id))

        assert outcome.success is False
        assert outcome.error == "Unknown automation type: archive_mailbox"

    def test_legacy_kind_dispatches_by_integration_type(self, repos, settings, employee):
        slack = _with_slack_account(repos, employee)
        connector = FakeConnector()
        service = _service(repos, settings, {slack.id: connector})
        response = _start(service, employee, transfer_to_email="boss@acme.test")
        task = asyncio.run(
            repos.tasks.create(
                workflow_id=response.workflow.id,
                name="Legacy Slack",
                type=TaskType.AUTOMATED,
                automation_type=AutomationKind.DEPROVISION_SLACK,
                status=TaskStatus.PENDING,
                sort_order=99,
            )
        )

        outcome = asyncio.run(service.run_automated_task(task.id))

        assert outcome.success is True
        # Exit options only reach the directory
        assert connector.deprovision_calls[0]["options"] is None


class TestWorkflowState:
    def test_cancel_returns_employee_to_active(self, repos, settings, employee):
        service = _service(repos, settings)
        response = _start(service, employee, end_date=datetime(2026, 12, 31, tzinfo=UTC))

        cancelled = asyncio.run(service.cancel_workflow(response.workflow.id))

        assert cancelled.status == WorkflowStatus.CANCELLED
        updated = asyncio.run(repos.employees.get_by_id(employee.id))
        assert updated.status == EmployeeStatus.ACTIVE
        assert updated.end_date is None
        assert AuditAction.OFFBOARDING_CANCELLED in repos.audit.actions()

    def test_cancel_is_idempotent(self, repos, settings, employee):
        service = _service(repos, settings)
        response = _start(service, employee)
        asyncio.run(service.cancel_workflow(response.workflow.id))

        again = asyncio.run(service.cancel_workflow(response.workflow.id))

        assert again.status == WorkflowStatus.CANCELLED
        assert repos.audit.actions().count(AuditAction.OFFBOARDING_CANCELLED) == 1

    def test_completed_workflow_cannot_be_cancelled(self, repos, settings, employee):
        service = _service(repos, settings)
        response = _start(service, employee)
        for task in response.tasks:
            asyncio.run(service.skip_task(task.id, "Not applicable"))

        with pytest.raises(WorkflowCompletedError):
            asyncio.run(service.cancel_workflow(response.workflow.id))

    def test_tasks_of_cancelled_workflow_cannot_run(self, repos, settings, employee):
        slack = _with_slack_account(repos, employee)
        service = _service(repos, settings, {slack.id: FakeConnector()})
        response = _start(service, employee)
        task = next(task for task in response.tasks if task.type == TaskType.AUTOMATED)
        asyncio.run(service.cancel_workflow(response.workflow.id))

        with pytest.raises(ValidationError):
            asyncio.run(service.run_automated_task(task.id))

    def test_cancelled_employee_can_be_offboarded_again(self, repos, settings, employee):
        service = _service(repos, settings)
        first = _start(service, employee)
        asyncio.run(service.cancel_workflow(first.workflow.id))

        second = _start(service, employee)

        assert second.workflow.id != first.workflow.id

    def test_process_scheduled_starts_due_workflows(self, repos, settings, employee):
        slack = _with_slack_account(repos, employee)
        later = repos.employees.add(make_employee(work_email="grace@example.com"))
        service = _service(repos, settings, {slack.id: FakeConnector()})
        now = datetime.now(UTC)
        due = _start(service, employee, end_date=now - timedelta(hours=1))
        not_due = _start(service, later, end_date=now + timedelta(days=7))

        started = asyncio.run(service.process_scheduled(now))

        assert started == [due.workflow.id]
        assert asyncio.run(repos.workflows.get_by_id(due.workflow.id)).status == WorkflowStatus.IN_PROGRESS
        assert asyncio.run(repos.workflows.get_by_id(not_due.workflow.id)).status == WorkflowStatus.PENDING
        slack_task = next(
            task
            for task in asyncio.run(repos.tasks.list_for_workflow(due.workflow.id))
            if task.integration_id == slack.id
        )
        assert slack_task.status == TaskStatus.SUCCESS


class TestTemplates:
    def test_defaults_are_seeded_once(self, repos, settings):
        service = _service(repos, settings)
        first = asyncio.run(service.list_templates())
        second = asyncio.run(service.list_templates())

        assert [t.name for t in first] == [t.name for t in DEFAULT_TASK_TEMPLATES]
        assert len(second) == len(first)

    def test_create_appends_integration_template(self, repos, settings):
        jira = repos.integrations.add(make_integration(IntegrationType.JIRA, name="Jira"))
        service = _service(repos, settings)

        template = asyncio.run(
            service.create_template(
                TaskTemplateCreate(kind="INTEGRATION", name="Remove Jira access", integration_id=jira.id)
            )
        )

        assert template.type == TaskType.AUTOMATED
        assert template.integration_id == jira.id
        assert template.integration_type == IntegrationType.JIRA
        assert template.automation_type == AutomationKind.DEPROVISION_APP
        assert template.sort_order == max(t.sort_order for t in DEFAULT_TASK_TEMPLATES) + 1

    def test_standup_template_uses_standup_kind(self, repos, settings):
        standup = repos.integrations.add(make_integration(IntegrationType.STANDUPNINJA))
        template = asyncio.run(
            _service(repos, settings).create_template(
                TaskTemplateCreate(kind="INTEGRATION", name="Standup", integration_id=standup.id)
            )
        )
        assert template.automation_type == AutomationKind.DEPROVISION_STANDUP

    def test_integration_template_requires_integration(self):
        with pytest.raises(ValueError):
            TaskTemplateCreate(kind="INTEGRATION", name="Broken")

    def test_update_switches_to_manual(self, repos, settings):
        service = _service(repos, settings)
        templates = asyncio.run(service.list_templates())
        automated = next(t for t in templates if t.type == TaskType.AUTOMATED)

        updated = asyncio.run(
            service.update_template(automated.id, TaskTemplateUpdate(kind="MANUAL", name="Check Slack"))
        )

        assert updated.type == TaskType.MANUAL
        assert updated.integration_type is None
        assert updated.automation_type is None
        assert updated.name == "Check Slack"

    def test_move_swaps_with_neighbour(self, repos, settings):
        service = _service(repos, settings)
        templates = asyncio.run(service.list_templates())

        moved = asyncio.run(service.move_template(templates[1].id, "UP"))

        assert [t.id for t in moved[:2]] == [templates[1].id, templates[0].id]

    def test_move_at_edge_is_a_no_op(self, repos, settings):
        service = _service(repos, settings)
        templates = asyncio.run(service.list_templates())

        moved = asyncio.run(service.move_template(templates[0].id, "UP"))

        assert [t.id for t in moved] == [t.id for t in templates]

    def test_delete_renumbers(self, repos, settings):
        service = _service(repos, settings)
        templates = asyncio.run(service.list_templates())

        asyncio.run(service.delete_template(templates[0].id))

        remaining = asyncio.run(service.list_templates())
        assert [t.sort_order for t in remaining] == list(range(1, len(templates)))
        with pytest.raises(TemplateNotFoundError):
            asyncio.run(service.delete_template(templates[0].id))

    def test_reset_restores_defaults(self, repos, settings):
        service = _service(repos, settings)
        templates = asyncio.run(service.list_templates())
        for template in templates[:3]:
            asyncio.run(service.delete_template(template.id))

        reset = asyncio.run(service.reset_templates())

        assert [t.name for t in reset] == [t.name for t in DEFAULT_TASK_TEMPLATES]

    def test_inactive_templates_are_not_expanded(self, repos, settings, employee):
        service = _service(repos, settings)
        templates = asyncio.run(service.list_templates())
        asyncio.run(service.update_template(templates[0].id, TaskTemplateUpdate(is_active=False)))

        response = _start(service, employee)

        assert [task.name for task in response.tasks] == MANUAL_DEFAULTS[1:]
