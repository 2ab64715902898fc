"""App account ORM model."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from lifecycle_api.models.orm.base import Base, TimestampMixin, UUIDMixin


class AppAccountORM(Base, UUIDMixin, TimestampMixin):
    """An employee's access state in one integration.

    Rows are never deleted; deprovisioning moves them to a terminal status.
    """

    __tablename__ = "app_accounts"

    employee_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    integration_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("integrations.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")
    status_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    external_user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    external_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    external_username: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # What was actually granted, used to revoke it later
    provisioned_resources: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)

    provisioned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deprovisioned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "employee_id",
            "integration_id",
            name="uq_app_accounts_employee_integration",
        ),
        Index("idx_app_accounts_employee_status", "employee_id", "status"),
    )
