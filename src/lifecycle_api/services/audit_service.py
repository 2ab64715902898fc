"""Audit service for centralized audit logging."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from lifecycle_api.repositories.audit_repository import AuditRepository

logger = logging.getLogger(__name__)


class AuditAction:
    """Standard audit action types."""

    # Account provisioning
    GOOGLE_USER_CREATED = "GOOGLE_USER_CREATED"
    SLACK_USER_CREATED = "SLACK_USER_CREATED"
    APP_ACCOUNT_PROVISIONED = "APP_ACCOUNT_PROVISIONED"

    # Account deprovisioning
    GOOGLE_USER_DISABLED = "GOOGLE_USER_DISABLED"
    SLACK_USER_DISABLED = "SLACK_USER_DISABLED"
    APP_ACCOUNT_DEPROVISIONED = "APP_ACCOUNT_DEPROVISIONED"

    # Offboarding
    OFFBOARDING_STARTED = "OFFBOARDING_STARTED"
    OFFBOARDING_TASK_COMPLETED = "OFFBOARDING_TASK_COMPLETED"
    OFFBOARDING_TASK_SKIPPED = "OFFBOARDING_TASK_SKIPPED"
    OFFBOARDING_COMPLETED = "OFFBOARDING_COMPLETED"
    OFFBOARDING_CANCELLED = "OFFBOARDING_CANCELLED"


class ResourceType:
    """Standard resource types for audit logging."""

    EMPLOYEE = "employee"
    APP_ACCOUNT = "app_account"
    OFFBOARDING_WORKFLOW = "offboarding_workflow"
    OFFBOARDING_TASK = "offboarding_task"


class AuditService:
    """Service for audit logging operations.

    Writing an audit entry never fails the operation being audited.
    """

    # Sensitive fields that should be masked in audit logs
    SENSITIVE_FIELDS = frozenset({
        "password",
        "temporary_password",
        "api_key",
        "api_token",
        "app_password",
        "access_token",
        "bot_token",
        "admin_token",
        "scim_token",
        "private_key",
        "secret",
        "credentials",
        "service_account_key",
    })

    def __init__(self, audit_repo: AuditRepository) -> None:
        """Initialize audit service.

        Args:
            audit_repo: Audit repository of the current unit of work
        """
        self.audit_repo = audit_repo

    @classmethod
    def _mask_sensitive_data(cls, data: dict[str, Any] | None) -> dict[str, Any] | None:
        """Mask sensitive fields in audit data to prevent credential leakage.

        Args:
            data: Dictionary that may contain sensitive fields

        Returns:
            Dictionary with sensitive values replaced by "[REDACTED]"
        """
        if data is None:
            return None

        masked = {}
        for key, value in data.items():
            if key.lower() in cls.SENSITIVE_FIELDS:
                masked[key] = "[REDACTED]"
            elif isinstance(value, dict):
                masked[key] = cls._mask_sensitive_data(value)
            elif isinstance(value, list):
                masked[key] = [
                    cls._mask_sensitive_data(item) if isinstance(item, dict) else item
                    for item in value
                ]
            else:
                masked[key] = value
        return masked

    async def log(
        self,
        action: str,
        resource_type: str,
        resource_id: UUID | None = None,
        actor_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Log an audit event.

        Args:
            action: Action performed (use AuditAction constants)
            resource_type: Type of resource (use ResourceType constants)
            resource_id: ID of the affected resource
            actor_id: ID of the user performing the action, None for the system
            details: Event details
        """
        try:
            await self.audit_repo.log(
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                actor_id=actor_id,
                actor_type="user" if actor_id else "system",
                changes=self._mask_sensitive_data(details),
            )
            logger.debug(
                "Audit logged: action=%s resource=%s/%s actor=%s",
                action,
                resource_type,
                resource_id,
                actor_id,
            )
        except SQLAlchemyError as e:
            # Never fail the main operation due to audit logging
            logger.error("Failed to write audit log: %s", e)
