"""Integration and connection ORM models."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, LargeBinary, String, Text
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from lifecycle_api.models.orm.base import Base, TimestampMixin, UUIDMixin


class IntegrationORM(Base, UUIDMixin, TimestampMixin):
    """A configured third-party system ("app") employees get accounts in."""

    __tablename__ = "integrations"

    type: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_integrations_type", "type"),)


class IntegrationConnectionORM(Base, UUIDMixin, TimestampMixin):
    """Encrypted provider configuration for an integration."""

    __tablename__ = "integration_connections"

    integration_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("integrations.id", ondelete="CASCADE"),
        nullable=False,
    )
    # AES-GCM blob, or plaintext JSON bytes for rows written before encryption
    config_encrypted: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_tested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_integration_connections_integration", "integration_id", "is_active"),
    )
