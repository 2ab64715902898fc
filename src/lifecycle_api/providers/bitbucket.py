"""Bitbucket Cloud connector (source control)."""

import base64
import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import httpx

from lifecycle_api.exceptions import (
    ConfigurationError,
    ExternalIdentityNotFoundError,
    ProviderAPIError,
)
from lifecycle_api.models.domain.account import (
    AppAccount,
    DeprovisionOptions,
    DeprovisionResult,
    ProvisionResult,
)
from lifecycle_api.models.domain.connection_config import BitbucketConfig
from lifecycle_api.models.domain.employee import Employee
from lifecycle_api.models.domain.integration import Integration, ProvisioningRule
from lifecycle_api.models.domain.provision_data import SourceControlGrants
from lifecycle_api.providers.base import BaseConnector, recorded_list, require_email
from lifecycle_api.providers.grants import GrantPlan
from lifecycle_api.providers.http import DEFAULT_MAX_PAGES, AuthFallbackClient, paginate_cursor
from lifecycle_api.services.rule_resolver import SOURCE_CONTROL_POLICY, resolve_grants

logger = logging.getLogger(__name__)

BITBUCKET_API_BASE = "https://api.bitbucket.org/2.0"
# Groups are only exposed by the 1.0 API
BITBUCKET_API_V1_BASE = "https://api.bitbucket.org/1.0"


def _basic_auth(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode()).decode()
    return f"Basic {token}"


def _segment(value: str) -> str:
    return quote(value, safe="")


class BitbucketConnector(BaseConnector[BitbucketConfig]):
    """Grants workspace group membership and repository permissions.

    Bitbucket accepts two kinds of API token: workspace/repository access
    tokens (Bearer) and account-level tokens (Basic with username). Since the
    stored token may be either, every call walks the candidates in order.
    """

    provider_name = "Bitbucket"

    def __init__(
        self,
        config: BitbucketConfig,
        http_client: httpx.AsyncClient | None = None,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> None:
        """Initialize Bitbucket connector.

        Args:
            config: Workspace and credentials
            http_client: HTTP client override
            max_pages: Pagination bound for listings
        """
        super().__init__(config, http_client)
        self.max_pages = max_pages
        candidates: list[str] = []
        if config.api_token:
            candidates.append(f"Bearer {config.api_token}")
        if config.username and config.api_token:
            candidates.append(_basic_auth(config.username, config.api_token))
        if config.username and config.app_password:
            candidates.append(_basic_auth(config.username, config.app_password))
        self.api = AuthFallbackClient(self.http, candidates, self.provider_name)

    @property
    def _workspace(self) -> str:
        return _segment(self.config.workspace)

    def _group_member_url(self, group_slug: str, account_id: str) -> str:
        return (
            f"{BITBUCKET_API_BASE}/workspaces/{self._workspace}/permissions-config/groups/"
            f"{_segment(group_slug)}/members/{_segment(account_id)}"
        )

    def _repository_user_url(self, repo_slug: str, account_id: str) -> str:
        return (
            f"{BITBUCKET_API_BASE}/repositories/{self._workspace}/{_segment(repo_slug)}"
            f"/permissions-config/users/{_segment(account_id)}"
        )

    async def list_groups(self) -> list[dict[str, str]]:
        """List workspace groups as ``{slug, name}``."""
        data = await self.api.request("GET", f"{BITBUCKET_API_V1_BASE}/groups/{self._workspace}")
        groups = data if isinstance(data, list) else []
        return [
            {"slug": group["slug"], "name": group.get("name") or group["slug"]}
            for group in groups
            if group.get("slug")
        ]

    async def list_repositories(self) -> list[dict[str, str]]:
        """List workspace repositories as ``{slug, name}``."""
        first_page = f"{BITBUCKET_API_BASE}/repositories/{self._workspace}?pagelen=100"

        async def fetch_page(cursor: str | None) -> tuple[list[dict[str, Any]], str | None]:
            data = await self.api.request("GET", cursor or first_page)
            values = data.get("values") if isinstance(data.get("values"), list) else []
            next_url = data.get("next") if isinstance(data.get("next"), str) else None
            return values, next_url

        repositories = await paginate_cursor(fetch_page, self.max_pages)
        return [
            {"slug": repo["slug"], "name": repo.get("name") or repo["slug"]}
            for repo in repositories
            if repo.get("slug")
        ]

    async def _lookup_member_account_id(self, email: str) -> str | None:
        params = {
            "q": f'user.email IN ("{email}")',
            "fields": "values.user.account_id,values.user.email",
        }
        data = await self.api.request(
            "GET", f"{BITBUCKET_API_BASE}/workspaces/{self._workspace}/members", params=params
        )
        for member in data.get("values") or []:
            account_id = (member.get("user") or {}).get("account_id")
            if account_id:
                return account_id
        return None

    async def _test_connection(self) -> None:
        await self.api.request(
            "GET", f"{BITBUCKET_API_BASE}/repositories/{self._workspace}", params={"pagelen": 1}
        )

    async def _provision(
        self,
        employee: Employee,
        integration: Integration,
        rules: Sequence[ProvisioningRule],
        existing_account: AppAccount | None,
    ) -> ProvisionResult:
        email = require_email(employee, self.provider_name)
        grants: SourceControlGrants = resolve_grants(employee, rules, SOURCE_CONTROL_POLICY)
        if grants.is_empty:
            raise ConfigurationError(
                "No Bitbucket provisioning rules found. "
                "Add rules with groups or repositories + permissions."
            )

        account_id = (
            existing_account.external_user_id if existing_account else None
        ) or await self._lookup_member_account_id(email)
        if not account_id:
            raise ExternalIdentityNotFoundError(
                f'Bitbucket user not found in workspace "{self.config.workspace}". '
                "Invite them to the workspace first, then retry."
            )

        # Group membership first, repository permissions second
        plan = GrantPlan(
            resources=("repositories", "groups"), external_user_id=account_id, external_email=email
        )
        for group_slug in grants.groups:
            plan.add(
                "groups",
                group_slug,
                lambda url=self._group_member_url(group_slug, account_id): self.api.request(
                    "PUT", url, expected=(200, 204)
                ),
            )
        for repo in grants.repositories:
            plan.add(
                "repositories",
                {"slug": repo.slug, "permission": repo.permission},
                lambda url=self._repository_user_url(repo.slug, account_id), body={
                    "permission": repo.permission
                }: self.api.request("PUT", url, json=body),
            )
        applied = await plan.execute()

        logger.info(
            "Bitbucket grants applied: %d group(s), %d repository permission(s)",
            len(applied["groups"]),
            len(applied["repositories"]),
        )
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
            raise ExternalIdentityNotFoundError("No Bitbucket user id found")

        groups = [slug for slug in recorded_list(account, "groups") if slug]
        repo_slugs = [
            repo.get("slug") or repo.get("repoSlug")
            for repo in recorded_list(account, "repositories")
            if isinstance(repo, dict)
        ]
        repo_slugs = [slug for slug in repo_slugs if slug]
        if not groups and not repo_slugs:
            return DeprovisionResult(success=True, message="No recorded Bitbucket grants")

        for group_slug in groups:
            await self.api.request(
                "DELETE", self._group_member_url(group_slug, account_id), expected=(204,)
            )
        for repo_slug in repo_slugs:
            try:
                await self.api.request(
                    "DELETE", self._repository_user_url(repo_slug, account_id), expected=(204,)
                )
            except ProviderAPIError as e:
                # Repository deleted since the grant was recorded
                if e.status_code != 404:
                    raise
                logger.info("Bitbucket repository no longer exists, skipping revoke")

        return DeprovisionResult(success=True)
