"""Tests for provisioning rule condition matching."""

import pytest

from conftest import make_employee, make_rule
from lifecycle_api.utils.condition_matcher import (
    get_employee_value,
    has_matching_rule,
    matches_condition,
)


class TestMatchesCondition:
    """Condition evaluation against employee attributes."""

    def test_empty_condition_matches_everyone(self):
        employee = make_employee()
        assert matches_condition(employee, {}) is True
        assert matches_condition(employee, None) is True

    @pytest.mark.parametrize(
        "condition",
        [
            {"department": "engineering"},
            {"department": "ENGINEERING"},
            {"department": "Engineering", "location": "berlin"},
        ],
    )
    def test_string_values_compare_case_insensitively(self, condition):
        assert matches_condition(make_employee(), condition) is True

    def test_all_keys_must_match(self):
        employee = make_employee()
        assert matches_condition(employee, {"department": "Engineering", "location": "Paris"}) is False

    def test_null_expected_values_are_ignored(self):
        employee = make_employee()
        assert matches_condition(employee, {"department": "Engineering", "location": None}) is True

    def test_missing_attribute_does_not_match_a_value(self):
        employee = make_employee(department=None)
        assert matches_condition(employee, {"department": "Engineering"}) is False

    def test_camel_case_keys_resolve_to_attributes(self):
        employee = make_employee(job_title="Designer", employment_type="Contractor")
        assert matches_condition(employee, {"jobTitle": "designer"}) is True
        assert matches_condition(employee, {"employmentType": "CONTRACTOR"}) is True

    def test_unknown_keys_fall_back_to_metadata(self):
        employee = make_employee(meta={"team": "Platform", "level": 3})
        assert matches_condition(employee, {"team": "platform"}) is True
        assert matches_condition(employee, {"level": 3}) is True
        assert matches_condition(employee, {"level": "3"}) is False

    def test_unknown_key_without_metadata_entry_does_not_match(self):
        assert matches_condition(make_employee(), {"costCenter": "R&D"}) is False


class TestGetEmployeeValue:
    """Condition key resolution."""

    def test_attribute_wins_over_metadata(self):
        employee = make_employee(meta={"department": "Sales"})
        assert get_employee_value(employee, "department") == "Engineering"

    def test_meta_field_itself_is_not_exposed(self):
        employee = make_employee(meta={"meta": "inner"})
        assert get_employee_value(employee, "meta") == "inner"

    def test_unknown_key_is_none(self):
        assert get_employee_value(make_employee(), "nickname") is None


class TestHasMatchingRule:
    """Rule-level matching."""

    def test_inactive_rules_never_match(self):
        rule = make_rule({"department": "Engineering"}).model_copy(update={"is_active": False})
        assert has_matching_rule(make_employee(), [rule]) is False

    def test_any_matching_rule_is_enough(self):
        rules = [make_rule({"department": "Sales"}), make_rule({"location": "BERLIN"})]
        assert has_matching_rule(make_employee(), rules) is True

    def test_no_rules(self):
        assert has_matching_rule(make_employee(), []) is False
