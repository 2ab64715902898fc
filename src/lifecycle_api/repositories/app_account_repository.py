"""App account repository."""

from collections.abc import Iterable
from typing import Any
from uuid import UUID

from sqlalchemy import select

from lifecycle_api.models.domain.account import LIVE_ACCOUNT_STATUSES, AccountStatus, AppAccount
from lifecycle_api.models.orm.app_account import AppAccountORM
from lifecycle_api.repositories.base import BaseRepository


class AppAccountRepository(BaseRepository[AppAccountORM, AppAccount]):
    """Repository for employee accounts in integrations."""

    model = AppAccountORM
    schema = AppAccount

    async def _get_pair_orm(self, employee_id: UUID, integration_id: UUID) -> AppAccountORM | None:
        result = await self.session.execute(
            select(AppAccountORM).where(
                AppAccountORM.employee_id == employee_id,
                AppAccountORM.integration_id == integration_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_for_employee(self, employee_id: UUID, integration_id: UUID) -> AppAccount | None:
        """Get the account of an employee in one integration."""
        return self._to_domain(await self._get_pair_orm(employee_id, integration_id))

    async def upsert(self, employee_id: UUID, integration_id: UUID, **fields: Any) -> AppAccount:
        """Create or update the account for an (employee, integration) pair.

        Args:
            employee_id: Employee UUID
            integration_id: Integration UUID
            **fields: Column values to set

        Returns:
            Created or updated account
        """
        existing = await self._get_pair_orm(employee_id, integration_id)

        if existing:
            for key, value in fields.items():
                setattr(existing, key, value)
            await self.session.flush()
            await self.session.refresh(existing)
            return AppAccount.model_validate(existing)

        return await self.create(employee_id=employee_id, integration_id=integration_id, **fields)

    async def list_for_employee(
        self,
        employee_id: UUID,
        statuses: Iterable[AccountStatus] | None = None,
    ) -> list[AppAccount]:
        """List an employee's accounts, optionally filtered by status."""
        query = select(AppAccountORM).where(AppAccountORM.employee_id == employee_id)
        if statuses is not None:
            query = query.where(AppAccountORM.status.in_([str(s) for s in statuses]))
        result = await self.session.execute(query.order_by(AppAccountORM.created_at))
        return [AppAccount.model_validate(row) for row in result.scalars().all()]

    async def list_live_for_employee(self, employee_id: UUID) -> list[AppAccount]:
        """List accounts that still hold or are acquiring access."""
        return await self.list_for_employee(employee_id, LIVE_ACCOUNT_STATUSES)
