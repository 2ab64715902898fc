"""Offboarding workflow router."""

from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Body, Depends, status

from lifecycle_api.dependencies import get_offboarding_service
from lifecycle_api.models.domain.offboarding import OffboardingTaskTemplate, OffboardingWorkflow
from lifecycle_api.models.dto.offboarding import (
    CancelWorkflowRequest,
    CompleteTaskRequest,
    OffboardingWorkflowResponse,
    RunTaskRequest,
    SkipTaskRequest,
    StartOffboardingRequest,
    TaskRunResponse,
    TaskTemplateCreate,
    TaskTemplateListResponse,
    TaskTemplateUpdate,
)
from lifecycle_api.services.offboarding_service import OffboardingService

router = APIRouter()

Service = Annotated[OffboardingService, Depends(get_offboarding_service)]


@router.post("", response_model=OffboardingWorkflowResponse, status_code=status.HTTP_201_CREATED)
async def start_offboarding(
    request: StartOffboardingRequest,
    service: Service,
) -> OffboardingWorkflowResponse:
    """Start offboarding an employee."""
    return await service.start_offboarding(request.employee_id, request, request.actor_id)


# Template routes are registered before "/{workflow_id}" so the literal path wins


@router.get("/templates", response_model=TaskTemplateListResponse)
async def list_task_templates(service: Service) -> TaskTemplateListResponse:
    """List task templates in sort order."""
    return TaskTemplateListResponse(items=await service.list_templates())


@router.post(
    "/templates",
    response_model=OffboardingTaskTemplate,
    status_code=status.HTTP_201_CREATED,
)
async def create_task_template(
    data: TaskTemplateCreate,
    service: Service,
) -> OffboardingTaskTemplate:
    """Append a task template."""
    return await service.create_template(data)


@router.post("/templates/reset", response_model=TaskTemplateListResponse)
async def reset_task_templates(service: Service) -> TaskTemplateListResponse:
    """Replace all task templates with the defaults."""
    return TaskTemplateListResponse(items=await service.reset_templates())


@router.patch("/templates/{template_id}", response_model=OffboardingTaskTemplate)
async def update_task_template(
    template_id: UUID,
    data: TaskTemplateUpdate,
    service: Service,
) -> OffboardingTaskTemplate:
    """Update a task template."""
    return await service.update_template(template_id, data)


@router.delete("/templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task_template(template_id: UUID, service: Service) -> None:
    """Delete a task template."""
    await service.delete_template(template_id)


@router.post("/templates/{template_id}/move", response_model=TaskTemplateListResponse)
async def move_task_template(
    template_id: UUID,
    direction: Annotated[Literal["UP", "DOWN"], Body(embed=True)],
    service: Service,
) -> TaskTemplateListResponse:
    """Move a task template up or down by one position."""
    return TaskTemplateListResponse(items=await service.move_template(template_id, direction))


@router.post("/tasks/{task_id}/run", response_model=TaskRunResponse)
async def run_task(
    task_id: UUID,
    service: Service,
    request: Annotated[RunTaskRequest, Body()] = RunTaskRequest(),
) -> TaskRunResponse:
    """Run or retry an automated task."""
    return await service.run_automated_task(task_id, request.actor_id)


@router.post("/tasks/{task_id}/complete", response_model=TaskRunResponse)
async def complete_task(
    task_id: UUID,
    service: Service,
    request: Annotated[CompleteTaskRequest, Body()] = CompleteTaskRequest(),
) -> TaskRunResponse:
    """Mark a manual task as done."""
    return await service.complete_manual_task(task_id, request.notes, request.actor_id)


@router.post("/tasks/{task_id}/skip", response_model=TaskRunResponse)
async def skip_task(
    task_id: UUID,
    request: SkipTaskRequest,
    service: Service,
) -> TaskRunResponse:
    """Skip a task with a reason."""
    return await service.skip_task(task_id, request.reason, request.actor_id)


@router.get("/{workflow_id}", response_model=OffboardingWorkflowResponse)
async def get_workflow(workflow_id: UUID, service: Service) -> OffboardingWorkflowResponse:
    """Get a workflow with its tasks."""
    return await service.get_workflow(workflow_id)


@router.post("/{workflow_id}/cancel", response_model=OffboardingWorkflow)
async def cancel_workflow(
    workflow_id: UUID,
    service: Service,
    request: Annotated[CancelWorkflowRequest, Body()] = CancelWorkflowRequest(),
) -> OffboardingWorkflow:
    """Cancel a workflow that has not completed."""
    return await service.cancel_workflow(workflow_id, request.actor_id)
