"""Integration and provisioning rule domain models."""

from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class IntegrationType(StrEnum):
    """Third-party system an integration talks to."""

    GOOGLE_WORKSPACE = "google_workspace"  # directory
    SLACK = "slack"  # chat
    BITBUCKET = "bitbucket"  # source control
    JIRA = "jira"  # issue tracker
    HUBSPOT = "hubspot"  # CRM
    PASSBOLT = "passbolt"  # password manager
    FIREFLIES = "fireflies"  # meeting transcripts
    WEBFLOW = "webflow"  # CMS
    STANDUPNINJA = "standupninja"  # standup tool
    CUSTOM = "custom"  # webhook-only


class Integration(BaseModel):
    """Integration ("app") domain model."""

    id: UUID
    type: IntegrationType
    name: str
    description: str | None = None
    is_enabled: bool = True
    archived_at: datetime | None = None

    class Config:
        """Pydantic config."""

        from_attributes = True

    @property
    def is_archived(self) -> bool:
        """Whether the integration has been archived."""
        return self.archived_at is not None


class ProvisioningRule(BaseModel):
    """Provisioning rule domain model."""

    id: UUID
    integration_id: UUID
    name: str = ""
    condition: dict[str, Any] = Field(default_factory=dict)
    provision_data: dict[str, Any] = Field(default_factory=dict)
    priority: int = 0
    is_active: bool = True

    class Config:
        """Pydantic config."""

        from_attributes = True


class IntegrationConnection(BaseModel):
    """Stored (encrypted) connection config of an integration."""

    id: UUID
    integration_id: UUID
    config_encrypted: bytes | None = None
    is_active: bool = True
    last_tested_at: datetime | None = None

    class Config:
        """Pydantic config."""

        from_attributes = True
