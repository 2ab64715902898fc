"""Employee domain model."""

from datetime import date
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class EmployeeStatus(StrEnum):
    """Employee status enum."""

    ONBOARDING = "onboarding"
    ACTIVE = "active"
    OFFBOARDING = "offboarding"
    EXITED = "exited"


class Employee(BaseModel):
    """Employee domain model."""

    id: UUID
    full_name: str
    work_email: str | None = None
    personal_email: str | None = None
    department: str | None = None
    location: str | None = None
    employment_type: str | None = None
    job_title: str | None = None
    status: EmployeeStatus = EmployeeStatus.ACTIVE
    start_date: date | None = None
    end_date: date | None = None
    meta: dict[str, Any] = Field(default_factory=dict)

    class Config:
        """Pydantic config."""

        from_attributes = True

    @property
    def primary_email(self) -> str | None:
        """Work email if assigned, otherwise the personal address."""
        return self.work_email or self.personal_email
