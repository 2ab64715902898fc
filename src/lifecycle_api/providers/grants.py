"""Ordered grant application.

A connector describes the grants of one provision call as an explicit list of
steps. Steps run strictly in list order, so "group membership before
repository permission" is part of the plan rather than a side effect of how
the connector loops. A failing required step aborts the remaining steps and
reports what was already applied; nothing is rolled back. Optional steps
(best-effort memberships) log their failure and the plan continues.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from lifecycle_api.exceptions import ConnectorError, PartialApplicationError
from lifecycle_api.utils.secure_logging import log_warning

logger = logging.getLogger(__name__)


@dataclass
class GrantStep:
    """One grant against the provider.

    ``resource`` names the ``provisioned_resources`` list the step's
    ``record`` value is appended to once the step succeeds.
    """

    resource: str
    record: Any
    apply: Callable[[], Awaitable[Any]]
    optional: bool = False


@dataclass
class GrantPlan:
    """Ordered list of grant steps for one provision call."""

    steps: list[GrantStep] = field(default_factory=list)
    # Resource lists reported even when no step of that kind ran
    resources: tuple[str, ...] = ()
    # Identity the grants target, reported with a partial failure
    external_user_id: str | None = None
    external_email: str | None = None

    def add(
        self,
        resource: str,
        record: Any,
        apply: Callable[[], Awaitable[Any]],
        optional: bool = False,
    ) -> None:
        """Append a step to the end of the plan."""
        self.steps.append(GrantStep(resource, record, apply, optional))

    async def execute(self) -> dict[str, list[Any]]:
        """Run every step in order.

        Returns:
            Applied records grouped by resource name

        Raises:
            PartialApplicationError: When a required step fails; carries the
                records applied before it and the plan's external identity
        """
        applied: dict[str, list[Any]] = {name: [] for name in self.resources}
        for step in self.steps:
            try:
                await step.apply()
            except ConnectorError as e:
                if step.optional:
                    log_warning(logger, f"Skipping optional {step.resource} grant", e)
                    continue
                raise PartialApplicationError(
                    e,
                    applied,
                    external_user_id=self.external_user_id,
                    external_email=self.external_email,
                ) from e
            applied.setdefault(step.resource, []).append(step.record)
        return applied
