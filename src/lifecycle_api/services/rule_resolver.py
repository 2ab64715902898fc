"""Provisioning rule resolution.

Merges the grant payloads of every active rule matching an employee into one
record per provider. Rules are visited in priority order (highest first,
stable for ties) and each field is combined according to the provider's
merge policy:

- FIRST_WINS: scalar, the first rule that sets it keeps it
- UNION: list, de-duplicated with insertion order preserved
- RANKED: list of keyed resources, a recurring key keeps its highest rank
- KEYED: list of keyed resources, a recurring key keeps its first value
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from lifecycle_api.models.domain.employee import Employee
from lifecycle_api.models.domain.integration import IntegrationType, ProvisioningRule
from lifecycle_api.models.domain.provision_data import (
    PERMISSION_RANK,
    ChatGrants,
    DirectoryGrants,
    IssueTrackerGrants,
    PasswordManagerGrants,
    SourceControlGrants,
)
from lifecycle_api.utils.condition_matcher import matches_condition

# Payload keys written by older rule editors
LEGACY_KEYS: dict[str, str] = {
    "orgUnitPath": "org_unit_path",
    "userGroups": "user_groups",
    "projectRoles": "project_roles",
    "repoSlug": "slug",
    "repo_slug": "slug",
    "repo": "slug",
    "projectId": "project_id",
    "projectKey": "project_key",
    "roleId": "role_id",
    "roleName": "role_name",
    "isAdmin": "is_admin",
}


class MergeStrategy(StrEnum):
    """How values from several matching rules combine."""

    FIRST_WINS = "first_wins"
    UNION = "union"
    RANKED = "ranked"
    KEYED = "keyed"


@dataclass(frozen=True)
class FieldPolicy:
    """Merge behaviour for one payload field."""

    strategy: MergeStrategy
    key: Callable[[Mapping[str, Any]], str | None] | None = None
    rank: Callable[[Mapping[str, Any]], int] | None = None


@dataclass(frozen=True)
class MergePolicy:
    """Merge behaviour for one provider's payload."""

    fields: dict[str, FieldPolicy]
    model: type[BaseModel]
    prepare: Callable[[dict[str, Any]], dict[str, Any]] | None = None


def _normalize_keys(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {LEGACY_KEYS.get(k, k): _normalize_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_normalize_keys(item) for item in value]
    return value


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _merge_union(current: list[Any], incoming: Any) -> list[Any]:
    for item in _as_list(incoming):
        if item and item not in current:
            current.append(item)
    return current


def _merge_keyed(
    current: list[dict[str, Any]],
    incoming: Any,
    policy: FieldPolicy,
) -> list[dict[str, Any]]:
    positions = {policy.key(item): index for index, item in enumerate(current)}
    for item in _as_list(incoming):
        if not isinstance(item, Mapping):
            continue
        key = policy.key(item)
        if not key:
            continue
        if key not in positions:
            positions[key] = len(current)
            current.append(dict(item))
        elif policy.strategy == MergeStrategy.RANKED and policy.rank is not None:
            existing = current[positions[key]]
            if policy.rank(item) > policy.rank(existing):
                current[positions[key]] = dict(item)
    return current


def sort_rules(rules: Iterable[ProvisioningRule]) -> list[ProvisioningRule]:
    """Order rules by priority, highest first, keeping ties in input order."""
    return sorted(rules, key=lambda rule: rule.priority, reverse=True)


def resolve_provision_data(
    employee: Employee,
    rules: Iterable[ProvisioningRule],
    policy: MergePolicy,
) -> dict[str, Any]:
    """Merge the payloads of all active rules matching an employee.

    Args:
        employee: Employee being provisioned
        rules: Rules of one integration, in any order
        policy: Provider merge policy

    Returns:
        Merged payload keyed by the policy's field names
    """
    merged: dict[str, Any] = {}
    for rule in sort_rules(rules):
        if not rule.is_active or not matches_condition(employee, rule.condition):
            continue

        data = _normalize_keys(rule.provision_data or {})
        if policy.prepare is not None:
            data = policy.prepare(data)

        for name, field_policy in policy.fields.items():
            value = data.get(name)
            if value is None:
                continue
            if field_policy.strategy == MergeStrategy.FIRST_WINS:
                if merged.get(name) is None and value != "":
                    merged[name] = value
            elif field_policy.strategy == MergeStrategy.UNION:
                merged[name] = _merge_union(merged.get(name, []), value)
            else:
                merged[name] = _merge_keyed(merged.get(name, []), value, field_policy)

    return merged


def resolve_grants(
    employee: Employee,
    rules: Iterable[ProvisioningRule],
    policy: MergePolicy,
) -> Any:
    """Merge matching rules and validate the result into the policy's model."""
    return policy.model.model_validate(resolve_provision_data(employee, rules, policy))


# =============================================================================
# Provider policies
# =============================================================================


def _repository_key(item: Mapping[str, Any]) -> str | None:
    return item.get("slug") or None


def _repository_rank(item: Mapping[str, Any]) -> int:
    return PERMISSION_RANK.get(str(item.get("permission", "")).lower(), 0)


def _lowercase_permissions(data: dict[str, Any]) -> dict[str, Any]:
    if data.get("repositories") is None:
        return data
    normalized = []
    for repo in _as_list(data["repositories"]):
        if isinstance(repo, Mapping) and isinstance(repo.get("permission"), str):
            repo = {**repo, "permission": repo["permission"].strip().lower()}
        normalized.append(repo)
    return {**data, "repositories": normalized}


def _project_role_key(item: Mapping[str, Any]) -> str | None:
    project_id, role_id = item.get("project_id"), item.get("role_id")
    if not project_id or not role_id:
        return None
    return f"{project_id}:{role_id}"


def _password_manager_role(data: dict[str, Any]) -> dict[str, Any]:
    role = data.get("role")
    if isinstance(role, str) and role.strip().lower() in ("user", "admin"):
        return {"role": role.strip().lower()}
    if data.get("is_admin") is True:
        return {"role": "admin"}
    return {}


DIRECTORY_POLICY = MergePolicy(
    fields={
        "org_unit_path": FieldPolicy(MergeStrategy.FIRST_WINS),
        "groups": FieldPolicy(MergeStrategy.UNION),
    },
    model=DirectoryGrants,
)

CHAT_POLICY = MergePolicy(
    fields={
        "channels": FieldPolicy(MergeStrategy.UNION),
        "user_groups": FieldPolicy(MergeStrategy.UNION),
    },
    model=ChatGrants,
)

SOURCE_CONTROL_POLICY = MergePolicy(
    fields={
        "groups": FieldPolicy(MergeStrategy.UNION),
        "repositories": FieldPolicy(
            MergeStrategy.RANKED, key=_repository_key, rank=_repository_rank
        ),
    },
    model=SourceControlGrants,
    prepare=_lowercase_permissions,
)

ISSUE_TRACKER_POLICY = MergePolicy(
    fields={
        "groups": FieldPolicy(MergeStrategy.UNION),
        "project_roles": FieldPolicy(MergeStrategy.KEYED, key=_project_role_key),
    },
    model=IssueTrackerGrants,
)

PASSWORD_MANAGER_POLICY = MergePolicy(
    fields={"role": FieldPolicy(MergeStrategy.FIRST_WINS)},
    model=PasswordManagerGrants,
    prepare=_password_manager_role,
)

MERGE_POLICIES: dict[IntegrationType, MergePolicy] = {
    IntegrationType.GOOGLE_WORKSPACE: DIRECTORY_POLICY,
    IntegrationType.SLACK: CHAT_POLICY,
    IntegrationType.BITBUCKET: SOURCE_CONTROL_POLICY,
    IntegrationType.JIRA: ISSUE_TRACKER_POLICY,
    IntegrationType.PASSBOLT: PASSWORD_MANAGER_POLICY,
}
