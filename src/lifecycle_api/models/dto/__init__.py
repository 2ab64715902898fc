"""Data Transfer Objects package."""

from lifecycle_api.models.dto.account import DeprovisionRequest, ProvisionRequest
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

__all__ = [
    "ProvisionRequest",
    "DeprovisionRequest",
    "StartOffboardingRequest",
    "CancelWorkflowRequest",
    "RunTaskRequest",
    "CompleteTaskRequest",
    "SkipTaskRequest",
    "TaskRunResponse",
    "OffboardingWorkflowResponse",
    "TaskTemplateCreate",
    "TaskTemplateUpdate",
    "TaskTemplateListResponse",
]
