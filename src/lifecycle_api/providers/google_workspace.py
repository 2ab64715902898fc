"""Google Workspace connector (directory)."""

import logging
import re
import secrets
import string
import time
from collections.abc import Sequence
from typing import Any, Protocol
from urllib.parse import quote

import httpx
from jose import jwt
from jose.exceptions import JOSEError

from lifecycle_api.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ConnectorError,
    ExternalIdentityNotFoundError,
    ProviderAPIError,
)
from lifecycle_api.models.domain.account import (
    AppAccount,
    DeprovisionOptions,
    DeprovisionResult,
    ProvisionResult,
)
from lifecycle_api.models.domain.connection_config import GoogleWorkspaceConfig
from lifecycle_api.models.domain.employee import Employee
from lifecycle_api.models.domain.integration import Integration, ProvisioningRule
from lifecycle_api.models.domain.provision_data import DirectoryGrants
from lifecycle_api.providers.base import BaseConnector
from lifecycle_api.providers.grants import GrantPlan
from lifecycle_api.providers.http import (
    DEFAULT_MAX_PAGES,
    paginate_cursor,
    parse_json,
    raise_for_provider_status,
    require_field,
    send_with_rate_limit,
)
from lifecycle_api.services.rule_resolver import DIRECTORY_POLICY, resolve_grants

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
DIRECTORY_API = "https://admin.googleapis.com/admin/directory/v1"
DATATRANSFER_API = "https://admin.googleapis.com/admin/datatransfer/v1"

GOOGLE_SCOPES = (
    "https://www.googleapis.com/auth/admin.directory.user",
    "https://www.googleapis.com/auth/admin.directory.group",
    "https://www.googleapis.com/auth/admin.datatransfer",
)

DEFAULT_TRANSFER_APPS = ["drive"]
LIST_PAGE_SIZE = 200
TEMP_PASSWORD_LENGTH = 16


class CredentialsNotifier(Protocol):
    """Sends the temporary password of a new account to the employee."""

    async def send_account_credentials(
        self,
        recipient: str | None,
        employee_name: str,
        work_email: str,
        temporary_password: str,
    ) -> bool: ...


def generate_work_email(full_name: str, domain: str) -> str:
    """Derive ``first.last@domain`` from a display name."""
    parts = [re.sub(r"[^a-z0-9]", "", part) for part in full_name.lower().split()]
    parts = [part for part in parts if part]
    if not parts:
        raise ConfigurationError("Cannot derive a work email without a name")
    local = parts[0] if len(parts) == 1 else f"{parts[0]}.{parts[-1]}"
    return f"{local}@{domain}"


def generate_temporary_password(length: int = TEMP_PASSWORD_LENGTH) -> str:
    """Random password containing letters, digits and symbols."""
    alphabet = string.ascii_letters + string.digits + "!@#$%^&*"
    while True:
        password = "".join(secrets.choice(alphabet) for _ in range(length))
        if (
            any(c.islower() for c in password)
            and any(c.isupper() for c in password)
            and any(c.isdigit() for c in password)
        ):
            return password


def _split_name(full_name: str) -> tuple[str, str]:
    parts = full_name.split()
    if not parts:
        return full_name, full_name
    return parts[0], " ".join(parts[1:]) or parts[0]


class GoogleWorkspaceConnector(BaseConnector[GoogleWorkspaceConfig]):
    """Google Workspace user lifecycle via the Admin SDK.

    Authenticates as a service account with domain-wide delegation,
    impersonating the configured admin.
    """

    provider_name = "Google Workspace"

    def __init__(
        self,
        config: GoogleWorkspaceConfig,
        http_client: httpx.AsyncClient | None = None,
        notifier: CredentialsNotifier | None = None,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> None:
        """Initialize Google Workspace connector.

        Args:
            config: Domain, admin email and service account key
            http_client: HTTP client override
            notifier: Receives credentials of newly created accounts
            max_pages: Pagination bound for listings
        """
        super().__init__(config, http_client)
        self.notifier = notifier
        self.max_pages = max_pages
        self._access_token: str | None = None
        self._token_expires_at = 0.0

    async def _get_access_token(self) -> str:
        """Exchange a signed service account JWT for an access token."""
        if self._access_token and time.time() < self._token_expires_at - 60:
            return self._access_token

        service_account = self.config.service_account
        now = int(time.time())
        payload = {
            "iss": service_account["client_email"],
            "sub": self.config.admin_email,
            "scope": " ".join(GOOGLE_SCOPES),
            "aud": GOOGLE_TOKEN_URL,
            "iat": now,
            "exp": now + 3600,
        }
        try:
            assertion = jwt.encode(payload, service_account["private_key"], algorithm="RS256")
        except JOSEError as e:
            raise ConfigurationError("Invalid service account private key") from e

        response = await send_with_rate_limit(
            self.http,
            "POST",
            GOOGLE_TOKEN_URL,
            data={"grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer", "assertion": assertion},
        )
        if response.status_code in (400, 401, 403):
            raise AuthenticationError(
                f"Google token exchange rejected ({response.status_code}). "
                "Check domain-wide delegation for the service account."
            )
        raise_for_provider_status(self.provider_name, response)
        data = parse_json(response)
        self._access_token = require_field(self.provider_name, data, "access_token")
        self._token_expires_at = now + float(data.get("expires_in", 3600))
        return self._access_token

    async def _request(
        self,
        method: str,
        url: str,
        expected: Sequence[int] = (200,),
        **kwargs: Any,
    ) -> Any:
        token = await self._get_access_token()
        response = await send_with_rate_limit(
            self.http, method, url, headers={"Authorization": f"Bearer {token}"}, **kwargs
        )
        raise_for_provider_status(self.provider_name, response, expected)
        return parse_json(response)

    @staticmethod
    def _user_url(user_key: str) -> str:
        return f"{DIRECTORY_API}/users/{quote(user_key, safe='@')}"

    async def _test_connection(self) -> None:
        await self._request(
            "GET", f"{DIRECTORY_API}/users", params={"domain": self.config.domain, "maxResults": 1}
        )

    async def _list(self, resource: str, **params: Any) -> list[dict[str, Any]]:
        async def fetch_page(cursor: str | None) -> tuple[list[dict[str, Any]], str | None]:
            query = {"domain": self.config.domain, "maxResults": LIST_PAGE_SIZE, **params}
            if cursor:
                query["pageToken"] = cursor
            data = await self._request("GET", f"{DIRECTORY_API}/{resource}", params=query)
            return data.get(resource) or [], data.get("nextPageToken")

        return await paginate_cursor(fetch_page, self.max_pages)

    async def list_groups(self) -> list[dict[str, str]]:
        """List groups as ``{email, name}``."""
        groups = await self._list("groups")
        return [{"email": g["email"], "name": g.get("name") or g["email"]} for g in groups if g.get("email")]

    async def list_users(self) -> list[dict[str, str]]:
        """List users as ``{email, name}``."""
        users = await self._list("users", orderBy="email")
        return [
            {
                "email": u["primaryEmail"],
                "name": (u.get("name") or {}).get("fullName") or u["primaryEmail"],
            }
            for u in users
            if u.get("primaryEmail")
        ]

    async def _create_user(
        self,
        employee: Employee,
        work_email: str,
        password: str,
        org_unit_path: str | None,
    ) -> str:
        given_name, family_name = _split_name(employee.full_name)
        created = await self._request(
            "POST",
            f"{DIRECTORY_API}/users",
            json={
                "primaryEmail": work_email,
                "name": {"givenName": given_name, "familyName": family_name},
                "password": password,
                "changePasswordAtNextLogin": True,
                "orgUnitPath": org_unit_path or "/",
            },
        )
        user_id = require_field(self.provider_name, created, "id")
        logger.info("Google Workspace user created")
        return user_id

    async def _notify_credentials(self, employee: Employee, work_email: str, password: str) -> None:
        if self.notifier is None:
            return
        await self.notifier.send_account_credentials(
            recipient=employee.personal_email,
            employee_name=employee.full_name,
            work_email=work_email,
            temporary_password=password,
        )

    async def _provision(
        self,
        employee: Employee,
        integration: Integration,
        rules: Sequence[ProvisioningRule],
        existing_account: AppAccount | None,
    ) -> ProvisionResult:
        grants: DirectoryGrants = resolve_grants(employee, rules, DIRECTORY_POLICY)
        work_email = employee.work_email or generate_work_email(employee.full_name, self.config.domain)
        password = generate_temporary_password()

        existing_id = existing_account.external_user_id if existing_account else None
        if existing_id:
            try:
                await self._request("PUT", self._user_url(existing_id), json={"suspended": False})
                user_id = existing_id
            except ProviderAPIError:
                # Deleted since the account was recorded
                user_id = await self._create_user(employee, work_email, password, grants.org_unit_path)
        else:
            try:
                user = await self._request("GET", self._user_url(work_email))
            except ProviderAPIError as e:
                if e.status_code != 404:
                    raise
                user = {}
            if not isinstance(user, dict):
                raise ProviderAPIError("Google Workspace user lookup returned an unexpected body")
            if user.get("id"):
                if user.get("suspended"):
                    await self._request("PUT", self._user_url(work_email), json={"suspended": False})
                user_id = user["id"]
            else:
                user_id = await self._create_user(employee, work_email, password, grants.org_unit_path)
                await self._notify_credentials(employee, work_email, password)

        # Missing groups and existing memberships are tolerated
        plan = GrantPlan(
            resources=("groups",), external_user_id=user_id, external_email=work_email
        )
        for group in grants.groups:
            plan.add(
                "groups",
                group,
                lambda g=group: self._request(
                    "POST",
                    f"{DIRECTORY_API}/groups/{quote(g, safe='@')}/members",
                    json={"email": work_email, "role": "MEMBER"},
                ),
                optional=True,
            )
        applied = await plan.execute()

        return ProvisionResult(
            success=True,
            external_user_id=user_id,
            external_email=work_email,
            provisioned_resources={"org_unit_path": grants.org_unit_path, **applied},
        )

    async def _transfer_data(self, old_owner: str, new_owner: str, apps: list[str]) -> None:
        data = await self._request(
            "GET", f"{DATATRANSFER_API}/applications", params={"customerId": "my_customer"}
        )
        available = data.get("applications") or []
        transfers = []
        for app_name in apps:
            match = next(
                (a for a in available if app_name.lower() in (a.get("name") or "").lower() and a.get("id")),
                None,
            )
            if match is None:
                logger.warning("Google Workspace transfer app not found: %s", app_name)
                continue
            transfers.append({"applicationId": match["id"]})
        if not transfers:
            raise ConfigurationError("No valid Google apps selected for data transfer.")

        await self._request(
            "POST",
            f"{DATATRANSFER_API}/transfers",
            json={
                "oldOwnerUserId": old_owner,
                "newOwnerUserId": new_owner,
                "applicationDataTransfers": transfers,
            },
        )

    async def _deprovision(
        self,
        employee: Employee,
        integration: Integration,
        account: AppAccount,
        options: DeprovisionOptions,
    ) -> DeprovisionResult:
        user_key = account.external_user_id or account.external_email or employee.work_email
        if not user_key:
            raise ExternalIdentityNotFoundError("No external user ID or email found")

        transfer_to = (options.transfer_to_email or "").strip()
        alias_to = (options.alias_to_email or "").strip()
        alias_email = account.external_email or employee.work_email
        if alias_to and not options.delete_account:
            raise ConfigurationError("Email alias mapping requires deleting the Google account.")
        if alias_to and not alias_email:
            raise ConfigurationError("No source email available for alias mapping.")

        if transfer_to:
            await self._transfer_data(user_key, transfer_to, options.transfer_apps or DEFAULT_TRANSFER_APPS)

        if not options.delete_account:
            await self._request("PUT", self._user_url(user_key), json={"suspended": True})
            return DeprovisionResult(success=True, message="Google Workspace user suspended")

        await self._request("DELETE", self._user_url(user_key), expected=(200, 204))
        if alias_to:
            try:
                await self._request(
                    "POST", f"{self._user_url(alias_to)}/aliases", json={"alias": alias_email}
                )
            except ConnectorError as e:
                raise ProviderAPIError(
                    f"Google account deleted but alias mapping failed: {e.message}"
                ) from e
        return DeprovisionResult(success=True, message="Google Workspace user deleted")
