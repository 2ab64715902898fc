"""Integration, connection and provisioning rule repositories."""

from uuid import UUID

from sqlalchemy import select

from lifecycle_api.models.domain.integration import (
    Integration,
    IntegrationConnection,
    IntegrationType,
    ProvisioningRule,
)
from lifecycle_api.models.orm.integration import IntegrationConnectionORM, IntegrationORM
from lifecycle_api.models.orm.provisioning_rule import ProvisioningRuleORM
from lifecycle_api.repositories.base import BaseRepository


class IntegrationRepository(BaseRepository[IntegrationORM, Integration]):
    """Repository for integration operations."""

    model = IntegrationORM
    schema = Integration

    async def get_by_type(self, integration_type: IntegrationType | str) -> Integration | None:
        """Get the first non-archived integration of a type.

        Args:
            integration_type: Integration type

        Returns:
            Integration or None if not found
        """
        result = await self.session.execute(
            select(IntegrationORM)
            .where(
                IntegrationORM.type == str(integration_type),
                IntegrationORM.archived_at.is_(None),
            )
            .order_by(IntegrationORM.created_at)
            .limit(1)
        )
        return self._to_domain(result.scalar_one_or_none())


class ConnectionRepository(BaseRepository[IntegrationConnectionORM, IntegrationConnection]):
    """Repository for stored connection configs."""

    model = IntegrationConnectionORM
    schema = IntegrationConnection

    async def get_active_for_integration(self, integration_id: UUID) -> IntegrationConnection | None:
        """Get the most recent active connection of an integration."""
        result = await self.session.execute(
            select(IntegrationConnectionORM)
            .where(
                IntegrationConnectionORM.integration_id == integration_id,
                IntegrationConnectionORM.is_active.is_(True),
            )
            .order_by(IntegrationConnectionORM.created_at.desc())
            .limit(1)
        )
        return self._to_domain(result.scalar_one_or_none())


class ProvisioningRuleRepository(BaseRepository[ProvisioningRuleORM, ProvisioningRule]):
    """Repository for provisioning rules."""

    model = ProvisioningRuleORM
    schema = ProvisioningRule

    async def get_active_for_integration(self, integration_id: UUID) -> list[ProvisioningRule]:
        """Get active rules of an integration, highest priority first.

        Ties keep creation order.
        """
        result = await self.session.execute(
            select(ProvisioningRuleORM)
            .where(
                ProvisioningRuleORM.integration_id == integration_id,
                ProvisioningRuleORM.is_active.is_(True),
            )
            .order_by(ProvisioningRuleORM.priority.desc(), ProvisioningRuleORM.created_at)
        )
        return [ProvisioningRule.model_validate(row) for row in result.scalars().all()]
