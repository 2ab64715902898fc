"""App account domain model and connector result types."""

from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from lifecycle_api.exceptions import ConnectorError


class AccountStatus(StrEnum):
    """Lifecycle status of an employee's account in one integration."""

    PENDING = "pending"  # invite sent, acceptance outstanding
    PROVISIONING = "provisioning"
    ACTIVE = "active"
    FAILED = "failed"
    DEPROVISIONED = "deprovisioned"
    DISABLED = "disabled"


# Accounts that still hold (or may soon hold) access
LIVE_ACCOUNT_STATUSES = (
    AccountStatus.ACTIVE,
    AccountStatus.PENDING,
    AccountStatus.PROVISIONING,
)

# Nothing left to revoke
REVOKED_ACCOUNT_STATUSES = (
    AccountStatus.DEPROVISIONED,
    AccountStatus.DISABLED,
)


class AppAccount(BaseModel):
    """App account domain model."""

    id: UUID
    employee_id: UUID
    integration_id: UUID
    status: AccountStatus
    status_message: str | None = None
    external_user_id: str | None = None
    external_email: str | None = None
    external_username: str | None = None
    provisioned_resources: dict[str, Any] | None = None
    provisioned_at: datetime | None = None
    deprovisioned_at: datetime | None = None
    last_sync_at: datetime | None = None

    class Config:
        """Pydantic config."""

        from_attributes = True


class DeprovisionOptions(BaseModel):
    """Exit-specific options passed through to deprovisioning.

    Only the directory connector acts on these today.
    """

    delete_account: bool = False
    transfer_to_email: str | None = None
    transfer_apps: list[str] = Field(default_factory=list)
    alias_to_email: str | None = None


class _ConnectorResult(BaseModel):
    """Fields shared by every connector result."""

    success: bool
    error: str | None = None
    message: str | None = None
    error_kind: str | None = None
    retryable: bool = False

    @classmethod
    def from_error(cls, error: ConnectorError, **fields: Any) -> Any:
        """Build a failed result from a connector error."""
        return cls(
            success=False,
            error=error.message,
            error_kind=error.kind,
            retryable=error.retryable,
            **fields,
        )


class ProvisionResult(_ConnectorResult):
    """Outcome of one provision call."""

    external_user_id: str | None = None
    external_email: str | None = None
    external_username: str | None = None
    provisioned_resources: dict[str, Any] | None = None


class DeprovisionResult(_ConnectorResult):
    """Outcome of one deprovision call."""

    pass


class ConnectionTestResult(_ConnectorResult):
    """Outcome of a connection test."""

    pass
