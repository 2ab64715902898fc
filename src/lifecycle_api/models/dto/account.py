"""Account provisioning DTOs."""

from uuid import UUID

from pydantic import BaseModel

from lifecycle_api.models.domain.account import DeprovisionOptions


class ProvisionRequest(BaseModel):
    """Provision an employee in an integration."""

    actor_id: UUID | None = None


class DeprovisionRequest(BaseModel):
    """Deprovision an employee from an integration."""

    actor_id: UUID | None = None
    options: DeprovisionOptions | None = None
