"""Employee repository."""

from sqlalchemy import func, select

from lifecycle_api.models.domain.employee import Employee
from lifecycle_api.models.orm.employee import EmployeeORM
from lifecycle_api.repositories.base import BaseRepository


class EmployeeRepository(BaseRepository[EmployeeORM, Employee]):
    """Repository for employee operations."""

    model = EmployeeORM
    schema = Employee

    async def get_by_email(self, email: str) -> Employee | None:
        """Get employee by work email (case-insensitive).

        Args:
            email: Work email address

        Returns:
            Employee or None if not found
        """
        result = await self.session.execute(
            select(EmployeeORM).where(func.lower(EmployeeORM.work_email) == email.lower())
        )
        return self._to_domain(result.scalar_one_or_none())
