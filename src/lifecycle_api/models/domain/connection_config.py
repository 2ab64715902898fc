"""Provider connection configuration models.

Decrypted connection configs are untyped JSON written by the admin UI using
camelCase keys. They are validated into one of the tagged models below before
a connector is constructed; a config that fails validation is treated as
"not configured".
"""

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
from pydantic.alias_generators import to_camel


class _ConfigModel(BaseModel):
    """Accepts both camelCase (stored) and snake_case keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class WebhookConfig(_ConfigModel):
    """Generic webhook endpoints that replace a dedicated connector."""

    provision_url: str | None = None
    deprovision_url: str | None = None
    test_url: str | None = None
    api_key: str | None = None

    @property
    def is_configured(self) -> bool:
        """Whether at least one endpoint is set."""
        return bool(self.provision_url or self.deprovision_url or self.test_url)


class _ProviderConfig(_ConfigModel):
    """Fields shared by every provider config."""

    webhook: WebhookConfig | None = None


class GoogleWorkspaceConfig(_ProviderConfig):
    """Directory: service account with domain-wide delegation."""

    provider: Literal["google_workspace"] = "google_workspace"
    domain: str = Field(min_length=1)
    admin_email: str = Field(min_length=1)
    service_account_key: str = Field(min_length=1)

    @field_validator("service_account_key")
    @classmethod
    def validate_service_account_key(cls, value: str) -> str:
        """Require a JSON key with a client email and private key."""
        try:
            key = json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError("Service account key must be JSON") from e
        if not isinstance(key, dict) or not key.get("client_email") or not key.get("private_key"):
            raise ValueError("Service account key must contain client_email and private_key")
        return value

    @property
    def service_account(self) -> dict[str, Any]:
        """Parsed service account key."""
        return json.loads(self.service_account_key)


class SlackConfig(_ProviderConfig):
    """Chat: bot token, optional admin token for invites and deactivation."""

    provider: Literal["slack"] = "slack"
    bot_token: str = Field(min_length=1)
    admin_token: str | None = None
    team_id: str | None = None
    default_channels: list[str] = Field(default_factory=list)


class BitbucketConfig(_ProviderConfig):
    """Source control: workspace plus an API token or app password."""

    provider: Literal["bitbucket"] = "bitbucket"
    workspace: str = Field(min_length=1)
    username: str | None = None
    app_password: str | None = None
    api_token: str | None = None

    @model_validator(mode="after")
    def require_credentials(self) -> "BitbucketConfig":
        """Require an API token, or a username with an app password."""
        if not self.api_token and not (self.username and self.app_password):
            raise ValueError("Bitbucket requires apiToken or username + appPassword")
        return self


class JiraConfig(_ProviderConfig):
    """Issue tracker: site URL and an admin's API token."""

    provider: Literal["jira"] = "jira"
    base_url: str = Field(min_length=1)
    admin_email: str = Field(min_length=1)
    api_token: str = Field(min_length=1)
    products: list[str] = Field(default_factory=list)
    default_groups: list[str] = Field(default_factory=list)
    delete_on_deprovision: bool = False


class HubSpotConfig(_ProviderConfig):
    """CRM: user provisioning token."""

    provider: Literal["hubspot"] = "hubspot"
    scim_token: str = Field(min_length=1)
    base_url: str = "https://api.hubapi.com"


class PassboltConfig(_ProviderConfig):
    """Password manager: REST API or server-side CLI."""

    provider: Literal["passbolt"] = "passbolt"
    mode: Literal["API", "CLI"] | None = None
    base_url: str | None = None
    api_token: str | None = None
    cli_path: str | None = None
    cli_user: str | None = None
    default_role: Literal["user", "admin"] = "user"

    @field_validator("mode", mode="before")
    @classmethod
    def normalize_mode(cls, value: Any) -> Any:
        """Unknown modes mean "pick whatever is configured"."""
        if isinstance(value, str) and value.upper() in ("API", "CLI"):
            return value.upper()
        return None

    @field_validator("default_role", mode="before")
    @classmethod
    def normalize_role(cls, value: Any) -> Any:
        """Fall back to the user role for anything unrecognized."""
        if isinstance(value, str) and value.strip().lower() in ("user", "admin"):
            return value.strip().lower()
        return "user"

    @property
    def api_ready(self) -> bool:
        """Whether API mode has everything it needs."""
        return bool(self.base_url and self.api_token)

    @property
    def cli_ready(self) -> bool:
        """Whether CLI mode has everything it needs."""
        return bool(self.cli_path)

    @model_validator(mode="after")
    def require_mode(self) -> "PassboltConfig":
        """Require the selected mode, or any mode, to be usable."""
        if self.mode == "API" and not self.api_ready:
            raise ValueError("Passbolt API mode requires baseUrl and apiToken")
        if self.mode == "CLI" and not self.cli_ready:
            raise ValueError("Passbolt CLI mode requires cliPath")
        if not self.api_ready and not self.cli_ready:
            raise ValueError("Passbolt requires API or CLI settings")
        return self


class FirefliesConfig(_ProviderConfig):
    """Meeting transcripts: API key."""

    provider: Literal["fireflies"] = "fireflies"
    api_key: str = Field(min_length=1)


class WebflowConfig(_ProviderConfig):
    """CMS: API token and the site it publishes to."""

    provider: Literal["webflow"] = "webflow"
    api_token: str = Field(min_length=1)
    site_id: str = ""
    collection_id: str = ""


class StandupConfig(_ProviderConfig):
    """Standup tool: service URL and API key."""

    provider: Literal["standupninja"] = "standupninja"
    api_url: str = Field(min_length=1)
    api_key: str = Field(min_length=1)


class CustomConfig(_ProviderConfig):
    """Integrations driven purely by a webhook."""

    provider: Literal["custom"] = "custom"


ConnectionConfig = Annotated[
    Union[
        GoogleWorkspaceConfig,
        SlackConfig,
        BitbucketConfig,
        JiraConfig,
        HubSpotConfig,
        PassboltConfig,
        FirefliesConfig,
        WebflowConfig,
        StandupConfig,
        CustomConfig,
    ],
    Field(discriminator="provider"),
]

connection_config_adapter = TypeAdapter(ConnectionConfig)


def parse_connection_config(provider: str, raw: dict[str, Any]) -> ConnectionConfig:
    """Validate a decrypted config for the given provider type.

    Args:
        provider: Integration type value (used as the union tag)
        raw: Decrypted config dict

    Returns:
        Provider-specific config model

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid
    """
    return connection_config_adapter.validate_python({**raw, "provider": provider})
