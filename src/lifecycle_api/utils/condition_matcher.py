"""Provisioning rule condition matching.

A condition is a flat map of attribute name to expected value. An employee
matches when every key with a non-null value matches: strings compare
case-insensitively, anything else by equality. Keys that are not employee
attributes are looked up in the employee's metadata map.
"""

import re
from collections.abc import Iterable, Mapping
from typing import Any

from lifecycle_api.models.domain.employee import Employee
from lifecycle_api.models.domain.integration import ProvisioningRule

_MISSING = object()
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _to_snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def get_employee_value(employee: Employee, key: str) -> Any:
    """Resolve a condition key against an employee.

    Lookup order: model field, the snake_case spelling of a camelCase key
    (conditions written as ``jobTitle``), then the metadata map.

    Args:
        employee: Employee to inspect
        key: Condition key

    Returns:
        Attribute value, or None when the key is unknown
    """
    fields = type(employee).model_fields
    for candidate in (key, _to_snake(key)):
        if candidate in fields and candidate != "meta":
            return getattr(employee, candidate)

    value = employee.meta.get(key, _MISSING)
    if value is _MISSING:
        return None
    return value


def _values_match(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str) and isinstance(expected, str):
        return actual.lower() == expected.lower()
    return actual == expected


def matches_condition(employee: Employee, condition: Mapping[str, Any] | None) -> bool:
    """Check whether an employee satisfies a rule condition.

    Args:
        employee: Employee to check
        condition: Attribute name to expected value; None values are ignored

    Returns:
        True if every defined key matches (an empty condition matches everyone)
    """
    for key, expected in (condition or {}).items():
        if expected is None:
            continue
        if not _values_match(get_employee_value(employee, key), expected):
            return False
    return True


def has_matching_rule(employee: Employee, rules: Iterable[ProvisioningRule]) -> bool:
    """Check whether any active rule applies to the employee."""
    return any(rule.is_active and matches_condition(employee, rule.condition) for rule in rules)
