"""Audit log repository."""

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from lifecycle_api.models.orm.audit_log import AuditLogORM


class AuditRepository:
    """Repository for audit log operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    async def log(
        self,
        action: str,
        resource_type: str,
        resource_id: UUID | None = None,
        actor_id: UUID | None = None,
        actor_type: str = "user",
        changes: dict[str, Any] | None = None,
    ) -> None:
        """Create an audit log entry.

        Args:
            action: Action performed
            resource_type: Type of resource affected
            resource_id: ID of affected resource
            actor_id: ID of the user (or None for the system)
            actor_type: "user" or "system"
            changes: Event details
        """
        self.session.add(
            AuditLogORM(
                id=uuid4(),
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                actor_id=actor_id,
                actor_type=actor_type,
                changes=changes,
            )
        )
        await self.session.flush()
