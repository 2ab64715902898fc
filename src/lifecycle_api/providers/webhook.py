"""Generic webhook connector."""

import logging
from collections.abc import Sequence
from typing import Any

from lifecycle_api.exceptions import ConfigurationError, ProviderAPIError
from lifecycle_api.models.domain.account import (
    AppAccount,
    DeprovisionOptions,
    DeprovisionResult,
    ProvisionResult,
)
from lifecycle_api.models.domain.connection_config import WebhookConfig
from lifecycle_api.models.domain.employee import Employee
from lifecycle_api.models.domain.integration import Integration, ProvisioningRule
from lifecycle_api.providers.base import BaseConnector
from lifecycle_api.providers.http import parse_json, raise_for_provider_status, send_with_rate_limit

logger = logging.getLogger(__name__)


def _body_value(body: dict[str, Any], camel: str, snake: str) -> Any:
    value = body.get(camel, body.get(snake))
    return value if isinstance(value, str) else None


class WebhookConnector(BaseConnector[WebhookConfig]):
    """Delegates provisioning to customer-operated HTTP endpoints.

    Each action POSTs a JSON payload describing the app and the employee.
    A 2xx response with no ``success`` field counts as success; a body of
    ``{"success": false, "error": ...}`` counts as failure.
    """

    provider_name = "Webhook"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        api_key = self.config.api_key
        if api_key:
            headers["Authorization"] = api_key if api_key.startswith("Bearer ") else f"Bearer {api_key}"
        return headers

    async def _post(self, url: str, payload: dict[str, Any], action: str) -> dict[str, Any]:
        response = await send_with_rate_limit(
            self.http, "POST", url, headers=self._headers(), json=payload
        )
        body = parse_json(response)
        body = body if isinstance(body, dict) else {}
        if not response.is_success:
            if body.get("error"):
                raise ProviderAPIError(str(body["error"]), status_code=response.status_code)
            raise_for_provider_status(self.provider_name, response, expected=())
        if body.get("success") is False:
            raise ProviderAPIError(str(body.get("error") or f"{action.capitalize()} failed"))
        return body

    @staticmethod
    def _app_payload(integration: Integration) -> dict[str, Any]:
        return {"id": str(integration.id), "type": integration.type.value, "name": integration.name}

    async def _test_connection(self) -> None:
        url = self.config.test_url or self.config.provision_url or self.config.deprovision_url
        if not url:
            raise ConfigurationError("No webhook URL configured")
        response = await send_with_rate_limit(self.http, "GET", url, headers=self._headers())
        if not response.is_success:
            body = parse_json(response)
            if isinstance(body, dict) and body.get("error"):
                raise ProviderAPIError(str(body["error"]), status_code=response.status_code)
            raise ProviderAPIError(f"HTTP {response.status_code}", status_code=response.status_code)

    async def _provision(
        self,
        employee: Employee,
        integration: Integration,
        rules: Sequence[ProvisioningRule],
        existing_account: AppAccount | None,
    ) -> ProvisionResult:
        if not self.config.provision_url:
            raise ConfigurationError("No provision URL configured")

        body = await self._post(
            self.config.provision_url,
            {
                "action": "provision",
                "app": self._app_payload(integration),
                "employee": employee.model_dump(mode="json"),
                "rules": [rule.model_dump(mode="json") for rule in rules],
            },
            "provision",
        )
        resources = body.get("provisionedResources", body.get("provisioned_resources"))
        return ProvisionResult(
            success=True,
            external_user_id=_body_value(body, "externalUserId", "external_user_id"),
            external_email=_body_value(body, "externalEmail", "external_email"),
            external_username=_body_value(body, "externalUsername", "external_username"),
            provisioned_resources=resources if isinstance(resources, dict) else None,
        )

    async def _deprovision(
        self,
        employee: Employee,
        integration: Integration,
        account: AppAccount,
        options: DeprovisionOptions,
    ) -> DeprovisionResult:
        if not self.config.deprovision_url:
            raise ConfigurationError("No deprovision URL configured")

        await self._post(
            self.config.deprovision_url,
            {
                "action": "deprovision",
                "app": self._app_payload(integration),
                "employee": employee.model_dump(mode="json"),
                "account": account.model_dump(mode="json"),
            },
            "deprovision",
        )
        return DeprovisionResult(success=True)
