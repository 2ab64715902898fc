"""Jira Cloud connector (issue tracker)."""

import base64
import logging
from collections.abc import Sequence
from typing import Any

import httpx

from lifecycle_api.exceptions import ExternalIdentityNotFoundError
from lifecycle_api.models.domain.account import (
    AppAccount,
    DeprovisionOptions,
    DeprovisionResult,
    ProvisionResult,
)
from lifecycle_api.models.domain.connection_config import JiraConfig
from lifecycle_api.models.domain.employee import Employee
from lifecycle_api.models.domain.integration import Integration, ProvisioningRule
from lifecycle_api.models.domain.provision_data import IssueTrackerGrants
from lifecycle_api.providers.base import BaseConnector, recorded_list, require_email
from lifecycle_api.providers.grants import GrantPlan
from lifecycle_api.providers.http import (
    DEFAULT_MAX_PAGES,
    AuthFallbackClient,
    paginate_offset,
    require_field,
)
from lifecycle_api.services.rule_resolver import ISSUE_TRACKER_POLICY, resolve_grants

logger = logging.getLogger(__name__)

DEFAULT_PRODUCTS = ["jira-software"]
PROJECT_PAGE_SIZE = 50


def _unique(values: Sequence[Any]) -> list[str]:
    cleaned = [v.strip() for v in values if isinstance(v, str) and v.strip()]
    return list(dict.fromkeys(cleaned))


class JiraConnector(BaseConnector[JiraConfig]):
    """Jira user, group membership and project role management."""

    provider_name = "Jira"

    def __init__(
        self,
        config: JiraConfig,
        http_client: httpx.AsyncClient | None = None,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> None:
        """Initialize Jira connector.

        Args:
            config: Site URL and admin credentials
            http_client: HTTP client override
            max_pages: Pagination bound for listings
        """
        super().__init__(config, http_client)
        self.base_url = config.base_url.rstrip("/")
        self.max_pages = max_pages
        basic = base64.b64encode(f"{config.admin_email}:{config.api_token}".encode()).decode()
        # Site admin API tokens use Basic, service account tokens use Bearer
        self.api = AuthFallbackClient(
            self.http,
            [f"Basic {basic}", f"Bearer {config.api_token}"],
            self.provider_name,
        )

    def _url(self, path: str) -> str:
        return f"{self.base_url}/rest/api/3/{path}"

    async def list_projects(self) -> list[dict[str, str]]:
        """List projects as ``{id, key, name}``."""

        async def fetch_page(start_at: int) -> tuple[list[dict[str, Any]], bool]:
            data = await self.api.request(
                "GET",
                self._url("project/search"),
                params={"startAt": start_at, "maxResults": PROJECT_PAGE_SIZE},
            )
            return data.get("values") or [], bool(data.get("isLast", True))

        projects = await paginate_offset(fetch_page, PROJECT_PAGE_SIZE, self.max_pages)
        return [
            {"id": str(p["id"]), "key": p.get("key", ""), "name": p.get("name", "")}
            for p in projects
            if p.get("id")
        ]

    async def _test_connection(self) -> None:
        await self.api.request("GET", self._url("myself"))

    async def _find_account_id(self, email: str) -> str | None:
        users = await self.api.request(
            "GET", self._url("user/search"), params={"query": email, "maxResults": 5}
        )
        if not isinstance(users, list):
            return None
        users = [user for user in users if isinstance(user, dict)]
        if not users:
            return None
        for user in users:
            if (user.get("emailAddress") or "").lower() == email.lower():
                return user.get("accountId")
        return users[0].get("accountId")

    async def _ensure_user(self, email: str, display_name: str) -> str:
        account_id = await self._find_account_id(email)
        if account_id:
            return account_id

        created = await self.api.request(
            "POST",
            self._url("user"),
            expected=(200, 201),
            json={
                "emailAddress": email,
                "displayName": display_name,
                "products": self.config.products or DEFAULT_PRODUCTS,
            },
        )
        account_id = require_field(self.provider_name, created, "accountId")
        logger.info("Jira user created")
        return account_id

    async def _provision(
        self,
        employee: Employee,
        integration: Integration,
        rules: Sequence[ProvisioningRule],
        existing_account: AppAccount | None,
    ) -> ProvisionResult:
        email = require_email(employee, self.provider_name)
        grants: IssueTrackerGrants = resolve_grants(employee, rules, ISSUE_TRACKER_POLICY)

        account_id = (
            existing_account.external_user_id if existing_account else None
        ) or await self._ensure_user(email, employee.full_name or email)

        plan = GrantPlan(
            resources=("groups", "project_roles"), external_user_id=account_id, external_email=email
        )
        for group in _unique([*self.config.default_groups, *grants.groups]):
            plan.add(
                "groups",
                group,
                lambda g=group: self.api.request(
                    "POST",
                    self._url("group/user"),
                    expected=(200, 201),
                    params={"groupname": g},
                    json={"accountId": account_id},
                ),
            )
        for role in grants.project_roles:
            plan.add(
                "project_roles",
                role.model_dump(exclude_none=True),
                lambda r=role: self.api.request(
                    "POST",
                    self._url(f"project/{r.project_id}/role/{r.role_id}"),
                    expected=(200, 201, 204),
                    json={"user": [account_id]},
                ),
            )
        applied = await plan.execute()

        return ProvisionResult(
            success=True,
            external_user_id=account_id,
            external_email=email,
            provisioned_resources=applied,
        )

    async def _deprovision(
        self,
        employee: Employee,
        integration: Integration,
        account: AppAccount,
        options: DeprovisionOptions,
    ) -> DeprovisionResult:
        account_id = account.external_user_id
        if not account_id:
            raise ExternalIdentityNotFoundError("No Jira accountId found")

        for group in _unique([*self.config.default_groups, *recorded_list(account, "groups")]):
            await self.api.request(
                "DELETE",
                self._url("group/user"),
                expected=(200, 204),
                params={"groupname": group, "accountId": account_id},
            )

        roles = recorded_list(account, "project_roles") or recorded_list(account, "projectRoles")
        for role in roles:
            if not isinstance(role, dict):
                continue
            project_id = role.get("project_id") or role.get("projectId")
            role_id = role.get("role_id") or role.get("roleId")
            if not project_id or not role_id:
                continue
            await self.api.request(
                "DELETE",
                self._url(f"project/{project_id}/role/{role_id}"),
                expected=(200, 204),
                params={"user": account_id},
            )

        if self.config.delete_on_deprovision:
            await self.api.request(
                "DELETE", self._url("user"), expected=(204,), params={"accountId": account_id}
            )
            return DeprovisionResult(success=True, message="Jira user deleted")

        return DeprovisionResult(success=True)
