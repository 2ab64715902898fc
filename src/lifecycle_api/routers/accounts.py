"""Account provisioning router."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Body, Depends

from lifecycle_api.dependencies import get_account_service
from lifecycle_api.models.domain.account import DeprovisionResult, ProvisionResult
from lifecycle_api.models.dto.account import DeprovisionRequest, ProvisionRequest
from lifecycle_api.services.account_service import AccountService

router = APIRouter()


@router.post(
    "/{employee_id}/integrations/{integration_id}/provision",
    response_model=ProvisionResult,
)
async def provision_employee(
    employee_id: UUID,
    integration_id: UUID,
    account_service: Annotated[AccountService, Depends(get_account_service)],
    request: Annotated[ProvisionRequest, Body()] = ProvisionRequest(),
) -> ProvisionResult:
    """Provision an employee in an integration.

    Provider failures are reported in the result body, not as HTTP errors.
    """
    return await account_service.provision_employee(
        employee_id, integration_id=integration_id, actor_id=request.actor_id
    )


@router.post(
    "/{employee_id}/integrations/{integration_id}/deprovision",
    response_model=DeprovisionResult,
)
async def deprovision_employee(
    employee_id: UUID,
    integration_id: UUID,
    account_service: Annotated[AccountService, Depends(get_account_service)],
    request: Annotated[DeprovisionRequest, Body()] = DeprovisionRequest(),
) -> DeprovisionResult:
    """Deprovision an employee from an integration."""
    return await account_service.deprovision_employee(
        employee_id,
        integration_id=integration_id,
        actor_id=request.actor_id,
        options=request.options,
    )


@router.post("/{employee_id}/deprovision-all", response_model=dict[str, DeprovisionResult])
async def deprovision_employee_from_all(
    employee_id: UUID,
    account_service: Annotated[AccountService, Depends(get_account_service)],
    request: Annotated[DeprovisionRequest, Body()] = DeprovisionRequest(),
) -> dict[str, DeprovisionResult]:
    """Deprovision an employee from every integration with a live account."""
    return await account_service.deprovision_from_all(
        employee_id, actor_id=request.actor_id, options=request.options
    )
