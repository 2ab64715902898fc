"""Connector resolution for configured integrations."""

import logging
from typing import Any

import httpx
import pydantic

from lifecycle_api.config import Settings, get_settings
from lifecycle_api.models.domain.account import ConnectionTestResult
from lifecycle_api.models.domain.connection_config import (
    GoogleWorkspaceConfig,
    WebhookConfig,
    parse_connection_config,
)
from lifecycle_api.models.domain.integration import Integration, IntegrationType
from lifecycle_api.providers import (
    BaseConnector,
    BitbucketConnector,
    FirefliesConnector,
    GoogleWorkspaceConnector,
    HubSpotConnector,
    JiraConnector,
    PassboltConnector,
    SlackConnector,
    StandupConnector,
    WebflowConnector,
    WebhookConnector,
)
from lifecycle_api.providers.google_workspace import CredentialsNotifier
from lifecycle_api.repositories.integration_repository import ConnectionRepository
from lifecycle_api.security.encryption import EncryptionService, get_encryption_service
from lifecycle_api.utils.secure_logging import log_warning

logger = logging.getLogger(__name__)

# Connectors that only need their validated config and an HTTP client
SIMPLE_CONNECTORS: dict[IntegrationType, type[BaseConnector]] = {
    IntegrationType.SLACK: SlackConnector,
    IntegrationType.HUBSPOT: HubSpotConnector,
    IntegrationType.PASSBOLT: PassboltConnector,
    IntegrationType.FIREFLIES: FirefliesConnector,
    IntegrationType.WEBFLOW: WebflowConnector,
    IntegrationType.STANDUPNINJA: StandupConnector,
}

# Connectors with list operations bounded by the page limit
PAGINATED_CONNECTORS: dict[IntegrationType, type[BaseConnector]] = {
    IntegrationType.BITBUCKET: BitbucketConnector,
    IntegrationType.JIRA: JiraConnector,
}


def pick_webhook_config(raw: dict[str, Any]) -> WebhookConfig | None:
    """Extract a usable webhook config from a decrypted connection config.

    Args:
        raw: Decrypted connection config

    Returns:
        Webhook config if at least one endpoint is set, else None
    """
    webhook = raw.get("webhook")
    if not isinstance(webhook, dict):
        return None
    try:
        config = WebhookConfig.model_validate(webhook)
    except pydantic.ValidationError:
        return None
    return config if config.is_configured else None


class ConnectorResolver:
    """Decides which connector, if any, serves an integration."""

    def __init__(
        self,
        connections: ConnectionRepository,
        encryption: EncryptionService | None = None,
        http_client: httpx.AsyncClient | None = None,
        notifier: CredentialsNotifier | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize resolver.

        Args:
            connections: Connection repository
            encryption: Decrypts stored configs, the process-wide service when omitted
            http_client: HTTP client handed to connectors, shared client when omitted
            notifier: Receives new directory account credentials
            settings: Application settings
        """
        self.connections = connections
        self.encryption = encryption or get_encryption_service()
        self.http_client = http_client
        self.notifier = notifier
        self.settings = settings or get_settings()

    def _with_google_fallbacks(self, raw: dict[str, Any]) -> dict[str, Any]:
        """Fill missing directory credentials from the environment."""
        merged = dict(raw)
        fallbacks = {
            "domain": self.settings.google_workspace_domain,
            "adminEmail": self.settings.google_workspace_admin_email,
            "serviceAccountKey": self.settings.google_service_account_key,
        }
        snake_keys = {"adminEmail": "admin_email", "serviceAccountKey": "service_account_key"}
        for key, value in fallbacks.items():
            if not merged.get(key) and not merged.get(snake_keys.get(key, key)) and value:
                merged[key] = value
        return merged

    def _build(self, integration_type: IntegrationType, config: Any) -> BaseConnector | None:
        max_pages = self.settings.connector_max_pages
        if isinstance(config, GoogleWorkspaceConfig):
            return GoogleWorkspaceConnector(
                config,
                http_client=self.http_client,
                notifier=self.notifier,
                max_pages=max_pages,
            )
        if integration_type in PAGINATED_CONNECTORS:
            return PAGINATED_CONNECTORS[integration_type](
                config, http_client=self.http_client, max_pages=max_pages
            )
        connector_class = SIMPLE_CONNECTORS.get(integration_type)
        if connector_class is None:
            return None
        return connector_class(config, http_client=self.http_client)

    async def resolve(self, integration: Integration) -> BaseConnector | None:
        """Instantiate the connector for an integration.

        A configured webhook overrides the dedicated connector, except for the
        password manager which tries its direct mode first and only then the
        webhook.

        Args:
            integration: Integration to resolve

        Returns:
            Connector, or None when the integration is not configured
        """
        connection = await self.connections.get_active_for_integration(integration.id)
        if connection is None:
            return None

        raw = self.encryption.decrypt_config(connection.config_encrypted)
        webhook_config = pick_webhook_config(raw)
        webhook = (
            WebhookConnector(webhook_config, http_client=self.http_client)
            if webhook_config
            else None
        )

        if webhook is not None and integration.type != IntegrationType.PASSBOLT:
            return webhook

        if integration.type == IntegrationType.CUSTOM:
            return webhook

        if integration.type == IntegrationType.GOOGLE_WORKSPACE:
            raw = self._with_google_fallbacks(raw)

        try:
            config = parse_connection_config(str(integration.type), raw)
        except pydantic.ValidationError as e:
            if integration.type == IntegrationType.PASSBOLT and webhook is not None:
                return webhook
            log_warning(
                logger,
                f"Integration {integration.name} ({integration.type}) is missing required settings",
                e,
            )
            return None

        return self._build(integration.type, config)

    async def test_integration(self, integration: Integration) -> ConnectionTestResult:
        """Test an integration's stored credentials.

        Args:
            integration: Integration to test

        Returns:
            ConnectionTestResult, failed with "not configured" when no connector resolves
        """
        connector = await self.resolve(integration)
        if connector is None:
            return ConnectionTestResult(
                success=False,
                error=f"{integration.name} is not configured",
                error_kind="configuration",
            )
        return await connector.test_connection()
