"""Tests for merging provisioning rule payloads."""

import pytest

from conftest import make_employee, make_rule
from lifecycle_api.models.domain.provision_data import (
    ChatGrants,
    DirectoryGrants,
    PasswordManagerGrants,
    SourceControlGrants,
)
from lifecycle_api.services.rule_resolver import (
    CHAT_POLICY,
    DIRECTORY_POLICY,
    ISSUE_TRACKER_POLICY,
    PASSWORD_MANAGER_POLICY,
    SOURCE_CONTROL_POLICY,
    resolve_grants,
    resolve_provision_data,
    sort_rules,
)


class TestSortRules:
    def test_highest_priority_first_and_ties_keep_order(self):
        low = make_rule(priority=1)
        first_tie = make_rule(priority=5)
        second_tie = make_rule(priority=5)
        assert sort_rules([low, first_tie, second_tie]) == [first_tie, second_tie, low]


class TestDirectoryMerge:
    def test_org_unit_first_wins_and_groups_union(self):
        rules = [
            make_rule(priority=1, org_unit_path="/Staff", groups=["all@example.com"]),
            make_rule(
                {"department": "engineering"},
                priority=10,
                orgUnitPath="/Engineering",
                groups=["eng@example.com", "all@example.com"],
            ),
        ]
        grants = resolve_grants(make_employee(), rules, DIRECTORY_POLICY)

        assert isinstance(grants, DirectoryGrants)
        assert grants.org_unit_path == "/Engineering"
        assert grants.groups == ["eng@example.com", "all@example.com"]

    def test_non_matching_rules_contribute_nothing(self):
        rules = [make_rule({"department": "Sales"}, groups=["sales@example.com"])]
        grants = resolve_grants(make_employee(), rules, DIRECTORY_POLICY)
        assert grants.groups == []
        assert grants.org_unit_path is None

    def test_empty_org_unit_does_not_claim_the_field(self):
        rules = [
            make_rule(priority=2, org_unit_path=""),
            make_rule(priority=1, org_unit_path="/Staff"),
        ]
        assert resolve_grants(make_employee(), rules, DIRECTORY_POLICY).org_unit_path == "/Staff"


class TestChatMerge:
    def test_channels_are_deduplicated(self):
        rules = [
            make_rule(channels=["general", "random"], userGroups=["devs"]),
            make_rule(channels=["general", "engineering"], user_groups=["devs", "oncall"]),
        ]
        grants = resolve_grants(make_employee(), rules, CHAT_POLICY)

        assert isinstance(grants, ChatGrants)
        assert grants.channels == ["general", "random", "engineering"]
        assert grants.user_groups == ["devs", "oncall"]

    def test_merging_is_idempotent(self):
        rule = make_rule(channels=["general"])
        once = resolve_provision_data(make_employee(), [rule], CHAT_POLICY)
        twice = resolve_provision_data(make_employee(), [rule, rule], CHAT_POLICY)
        assert once == twice


class TestSourceControlMerge:
    def test_recurring_repository_keeps_highest_permission(self):
        rules = [
            make_rule(priority=5, repositories=[{"slug": "api", "permission": "read"}]),
            make_rule(priority=1, repositories=[{"repoSlug": "api", "permission": "write"}]),
        ]
        grants = resolve_grants(make_employee(), rules, SOURCE_CONTROL_POLICY)

        assert isinstance(grants, SourceControlGrants)
        assert [(r.slug, r.permission) for r in grants.repositories] == [("api", "write")]

    def test_lower_permission_does_not_downgrade(self):
        rules = [
            make_rule(priority=5, repositories=[{"slug": "api", "permission": "admin"}]),
            make_rule(priority=1, repositories=[{"slug": "api", "permission": "read"}]),
        ]
        grants = resolve_grants(make_employee(), rules, SOURCE_CONTROL_POLICY)
        assert grants.repositories[0].permission == "admin"

    def test_repositories_without_slug_are_dropped(self):
        rules = [make_rule(repositories=[{"permission": "write"}, {"slug": "web"}])]
        grants = resolve_grants(make_employee(), rules, SOURCE_CONTROL_POLICY)
        assert [r.slug for r in grants.repositories] == ["web"]
        assert grants.repositories[0].permission == "read"

    def test_permission_case_is_normalized_before_ranking(self):
        rules = [
            make_rule(priority=5, repositories=[{"slug": "api", "permission": " Write"}]),
            make_rule(priority=1, repositories=[{"slug": "api", "permission": "READ"}]),
        ]
        grants = resolve_grants(make_employee(), rules, SOURCE_CONTROL_POLICY)
        assert [(r.slug, r.permission) for r in grants.repositories] == [("api", "write")]

    def test_no_matching_rules_is_empty(self):
        grants = resolve_grants(make_employee(), [], SOURCE_CONTROL_POLICY)
        assert grants.is_empty


class TestIssueTrackerMerge:
    def test_project_roles_keyed_by_project_and_role(self):
        rules = [
            make_rule(
                priority=2,
                projectRoles=[
                    {"projectId": "10000", "roleId": "1", "roleName": "Developers"},
                    {"projectId": "10001", "roleId": "1"},
                ],
            ),
            make_rule(
                priority=1,
                project_roles=[
                    {"project_id": "10000", "role_id": "1", "role_name": "Renamed"},
                    {"project_id": "10000", "role_id": "2"},
                ],
            ),
        ]
        grants = resolve_grants(make_employee(), rules, ISSUE_TRACKER_POLICY)

        assert [role.key for role in grants.project_roles] == ["10000:1", "10001:1", "10000:2"]
        assert grants.project_roles[0].role_name == "Developers"


class TestPasswordManagerMerge:
    @pytest.mark.parametrize(
        ("payload", "expected"),
        [
            ({"role": "Admin"}, "admin"),
            ({"role": " user "}, "user"),
            ({"isAdmin": True}, "admin"),
            ({"role": "owner"}, None),
            ({}, None),
        ],
    )
    def test_role_normalization(self, payload, expected):
        grants = resolve_grants(make_employee(), [make_rule(**payload)], PASSWORD_MANAGER_POLICY)
        assert isinstance(grants, PasswordManagerGrants)
        assert grants.role == expected

    def test_highest_priority_role_wins(self):
        rules = [make_rule(priority=1, role="admin"), make_rule(priority=9, role="user")]
        assert resolve_grants(make_employee(), rules, PASSWORD_MANAGER_POLICY).role == "user"
