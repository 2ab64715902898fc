"""Slack connector (chat)."""

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from lifecycle_api.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ConnectorError,
    ExternalIdentityNotFoundError,
    ProviderAPIError,
    TransientError,
)
from lifecycle_api.models.domain.account import (
    AppAccount,
    DeprovisionOptions,
    DeprovisionResult,
    ProvisionResult,
)
from lifecycle_api.models.domain.connection_config import SlackConfig
from lifecycle_api.models.domain.employee import Employee
from lifecycle_api.models.domain.integration import Integration, ProvisioningRule
from lifecycle_api.models.domain.provision_data import ChatGrants
from lifecycle_api.providers.base import BaseConnector, require_email
from lifecycle_api.providers.grants import GrantPlan
from lifecycle_api.providers.http import parse_json, raise_for_provider_status, send_with_rate_limit
from lifecycle_api.services.rule_resolver import CHAT_POLICY, resolve_grants
from lifecycle_api.utils.secure_logging import log_warning

logger = logging.getLogger(__name__)

SLACK_API_BASE = "https://slack.com/api"

# Without users:read.email employees cannot be matched by email
REQUIRED_BOT_SCOPES = (
    "users:read",
    "users:read.email",
    "conversations:read",
    "conversations:write",
)

AUTH_ERRORS = ("invalid_auth", "not_authed", "token_revoked", "token_expired", "account_inactive")


class SlackConnector(BaseConnector[SlackConfig]):
    """Slack workspace membership, channels and user groups.

    The bot token handles lookups and channel membership. The optional admin
    token (Enterprise Grid) is needed to invite unknown users and to
    deactivate accounts.
    """

    provider_name = "Slack"

    async def _call(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        use_admin_token: bool = False,
    ) -> dict[str, Any]:
        """Call a Web API method and map ``ok: false`` onto connector errors.

        Args:
            method: Web API method name, e.g. ``users.lookupByEmail``
            params: Form parameters
            use_admin_token: Authenticate with the admin token

        Returns:
            Response body of a successful call
        """
        token = self.config.admin_token if use_admin_token else self.config.bot_token
        if not token:
            raise ConfigurationError("Slack admin token is not configured")

        response = await send_with_rate_limit(
            self.http,
            "POST",
            f"{SLACK_API_BASE}/{method}",
            headers={"Authorization": f"Bearer {token}"},
            data={k: v for k, v in (params or {}).items() if v is not None},
        )
        raise_for_provider_status(self.provider_name, response)
        data = parse_json(response)
        if data.get("ok"):
            return data

        error = data.get("error", "unknown_error")
        message = f"Slack API error on {method}: {error}"
        if error in AUTH_ERRORS:
            raise AuthenticationError(message)
        if error == "missing_scope":
            raise ConfigurationError(message, {"needed": data.get("needed")})
        if error == "ratelimited":
            raise TransientError(message)
        if error == "users_not_found":
            raise ExternalIdentityNotFoundError(message)
        raise ProviderAPIError(message)

    async def _test_connection(self) -> None:
        await self._call("auth.test")
        data = await self._call("apps.permissions.scopes.list")
        scopes = data.get("scopes") or []
        if isinstance(scopes, dict):
            # Older responses group scopes by resource type
            scopes = [scope for group in scopes.values() for scope in group]
        missing = [scope for scope in REQUIRED_BOT_SCOPES if scope not in scopes]
        if missing:
            raise ConfigurationError(
                f"Slack bot token is missing required scopes: {', '.join(missing)}. "
                "Add them in Slack app settings and reinstall the app."
            )

    async def _lookup_user_id(self, email: str) -> str | None:
        try:
            data = await self._call("users.lookupByEmail", {"email": email})
        except ExternalIdentityNotFoundError:
            return None
        except ConfigurationError as e:
            raise ConfigurationError(
                "Slack bot token is missing the required scope `users:read.email`. "
                "Add it in your Slack app and reinstall the app, then retry."
            ) from e
        return (data.get("user") or {}).get("id")

    async def _reactivate(self, user_id: str) -> None:
        if not self.config.admin_token:
            return
        try:
            await self._call(
                "admin.users.setRegular",
                {"user_id": user_id, "team_id": self.config.team_id or ""},
                use_admin_token=True,
            )
        except ConnectorError as e:
            # Already active, or the plan lacks admin methods
            logger.debug("Slack reactivation skipped: %s", e.message)

    async def _invite(self, email: str, channels: list[str]) -> ProvisionResult:
        if not channels:
            raise ConfigurationError(
                "Slack provisioning requires default channels (or provisioning rule channels)."
            )
        if not self.config.admin_token:
            raise ExternalIdentityNotFoundError(
                "Slack user not found in the workspace. Add an Admin token (Enterprise) to "
                "auto-invite, or invite the user manually, then retry."
            )
        try:
            await self._call(
                "admin.users.invite",
                {
                    "email": email,
                    "team_id": self.config.team_id,
                    "channel_ids": ",".join(channels),
                },
                use_admin_token=True,
            )
        except ProviderAPIError as e:
            raise ProviderAPIError(
                f"Slack invite failed: {e.message}. Invite the user manually or ensure your "
                "Admin token has the correct scopes and plan."
            ) from e

        # The user id only exists once the invite is accepted
        return ProvisionResult(
            success=True,
            external_email=email,
            provisioned_resources={"invited": True, "channels": channels},
        )

    async def _channel_ids_by_name(self) -> dict[str, str]:
        data = await self._call(
            "conversations.list",
            {"types": "public_channel,private_channel", "limit": 1000, "exclude_archived": "true"},
        )
        return {c["name"]: c["id"] for c in data.get("channels") or [] if c.get("id") and c.get("name")}

    async def _user_group_ids(self) -> dict[str, str]:
        data = await self._call("usergroups.list")
        groups: dict[str, str] = {}
        for group in data.get("usergroups") or []:
            if not group.get("id"):
                continue
            for label in (group.get("handle"), group.get("name")):
                if label:
                    groups[label] = group["id"]
        return groups

    async def _add_to_user_group(self, group_id: str, user_id: str) -> None:
        data = await self._call("usergroups.users.list", {"usergroup": group_id})
        users = list(data.get("users") or [])
        if user_id in users:
            return
        users.append(user_id)
        await self._call("usergroups.users.update", {"usergroup": group_id, "users": ",".join(users)})

    async def _provision(
        self,
        employee: Employee,
        integration: Integration,
        rules: Sequence[ProvisioningRule],
        existing_account: AppAccount | None,
    ) -> ProvisionResult:
        email = require_email(employee, self.provider_name)
        grants: ChatGrants = resolve_grants(employee, rules, CHAT_POLICY)
        channels = grants.channels or list(self.config.default_channels)

        user_id = existing_account.external_user_id if existing_account else None
        if user_id:
            await self._reactivate(user_id)
        else:
            user_id = await self._lookup_user_id(email)
            if not user_id:
                return await self._invite(email, channels)

        plan = GrantPlan(
            resources=("channels", "user_groups"), external_user_id=user_id, external_email=email
        )
        if channels:
            by_name = await self._channel_ids_by_name()
            for channel in channels:
                cleaned = channel.strip().lstrip("#")
                channel_id = by_name.get(cleaned) or (
                    cleaned if cleaned.startswith(("C", "G")) else None
                )
                if not channel_id:
                    log_warning(logger, "Slack channel not found, skipping")
                    continue
                plan.add(
                    "channels",
                    channel,
                    lambda cid=channel_id: self._call(
                        "conversations.invite", {"channel": cid, "users": user_id}
                    ),
                    optional=True,
                )
        if grants.user_groups:
            group_ids = await self._user_group_ids()
            for group in grants.user_groups:
                group_id = group_ids.get(group.lstrip("@")) or (
                    group if group.startswith("S") else None
                )
                if not group_id:
                    log_warning(logger, "Slack user group not found, skipping")
                    continue
                plan.add(
                    "user_groups",
                    group,
                    lambda gid=group_id: self._add_to_user_group(gid, user_id),
                    optional=True,
                )
        applied = await plan.execute()

        return ProvisionResult(
            success=True,
            external_user_id=user_id,
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
        user_id = account.external_user_id
        if not user_id:
            raise ExternalIdentityNotFoundError("No Slack user ID found")

        try:
            await self._call(
                "admin.users.setInactive",
                {"user_id": user_id, "team_id": self.config.team_id or ""},
                use_admin_token=True,
            )
            return DeprovisionResult(success=True, message="Slack user deactivated")
        except ConnectorError as e:
            log_warning(logger, "Slack admin deactivation failed, removing from channels", e)

        data = await self._call(
            "users.conversations",
            {"user": user_id, "types": "public_channel,private_channel", "limit": 1000},
        )
        removed = 0
        for channel in data.get("channels") or []:
            if not channel.get("id"):
                continue
            try:
                await self._call("conversations.kick", {"channel": channel["id"], "user": user_id})
                removed += 1
            except ConnectorError as e:
                # General channels and channels the bot is not in refuse kicks
                logger.debug("Slack kick skipped: %s", e.message)

        return DeprovisionResult(success=True, message=f"Removed from {removed} channel(s)")
