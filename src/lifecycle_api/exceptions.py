"""Domain-specific exceptions for the lifecycle API.

Two families live here. Service-layer errors (not found, conflict, validation)
are mapped to HTTP responses by the error handlers. Connector errors describe
why a call against a third-party system failed; connectors convert them into
result objects so they never cross the orchestrator boundary.
"""

from typing import Any


class LifecycleAPIError(Exception):
    """Base exception for all lifecycle API errors."""

    def __init__(self, message: str = "An error occurred", details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# =============================================================================
# Resource Not Found Errors (404)
# =============================================================================


class NotFoundError(LifecycleAPIError):
    """Base class for resource not found errors."""

    pass


class EmployeeNotFoundError(NotFoundError):
    """Raised when an employee cannot be found."""

    def __init__(self, employee_id: Any = None) -> None:
        details = {"employee_id": str(employee_id)} if employee_id else {}
        super().__init__("Employee not found", details)


class IntegrationNotFoundError(NotFoundError):
    """Raised when an integration cannot be found."""

    def __init__(self, integration_id: Any = None) -> None:
        details = {"integration_id": str(integration_id)} if integration_id else {}
        super().__init__("Integration not found", details)


class WorkflowNotFoundError(NotFoundError):
    """Raised when an offboarding workflow cannot be found."""

    def __init__(self, workflow_id: Any = None) -> None:
        details = {"workflow_id": str(workflow_id)} if workflow_id else {}
        super().__init__("Offboarding workflow not found", details)


class TaskNotFoundError(NotFoundError):
    """Raised when an offboarding task cannot be found."""

    def __init__(self, task_id: Any = None) -> None:
        details = {"task_id": str(task_id)} if task_id else {}
        super().__init__("Offboarding task not found", details)


class TemplateNotFoundError(NotFoundError):
    """Raised when an offboarding task template cannot be found."""

    def __init__(self, template_id: Any = None) -> None:
        details = {"template_id": str(template_id)} if template_id else {}
        super().__init__("Task template not found", details)


# =============================================================================
# Conflict Errors (409)
# =============================================================================


class ConflictError(LifecycleAPIError):
    """Base class for resource conflict errors."""

    pass


class ActiveWorkflowExistsError(ConflictError):
    """Raised when an employee already has a pending or running workflow."""

    def __init__(self, employee_id: Any = None) -> None:
        details = {"employee_id": str(employee_id)} if employee_id else {}
        super().__init__("Employee already has an active offboarding workflow", details)


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(LifecycleAPIError):
    """Base class for validation errors."""

    pass


class EmployeeAlreadyExitedError(ValidationError):
    """Raised when offboarding is requested for an employee who already left."""

    def __init__(self) -> None:
        super().__init__("Employee has already exited")


class WorkflowCompletedError(ValidationError):
    """Raised when a completed workflow is modified."""

    def __init__(self) -> None:
        super().__init__("Cannot cancel a completed workflow")


class InvalidTaskTypeError(ValidationError):
    """Raised when a task operation does not fit the task type."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class TaskAlreadyFinishedError(ValidationError):
    """Raised when a terminal task is run again."""

    def __init__(self, status: str) -> None:
        super().__init__("Task is already finished", {"status": status})


# =============================================================================
# Connector Errors (never surfaced over HTTP, converted to results)
# =============================================================================


class ConnectorError(LifecycleAPIError):
    """Base class for failures talking to a third-party system."""

    kind = "connector_error"
    retryable = False


class ConfigurationError(ConnectorError):
    """Missing or invalid credentials or required settings."""

    kind = "configuration"


class AuthenticationError(ConnectorError):
    """Every authentication candidate was rejected by the provider."""

    kind = "authentication"


class ExternalIdentityNotFoundError(ConnectorError):
    """The employee has no identity in the target system."""

    kind = "not_found"


class TransientError(ConnectorError):
    """Network failure, timeout, rate limiting or provider-side error."""

    kind = "transient"
    retryable = True


class ProviderAPIError(ConnectorError):
    """The provider rejected the request."""

    kind = "provider_error"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message, {"status_code": status_code} if status_code else None)


class PartialApplicationError(ConnectorError):
    """A grant sequence failed after some grants were applied.

    ``applied`` holds the resources granted before the failing step, in the
    same shape as a successful ``provisioned_resources`` record. The external
    identity the grants were made for is kept so they can be revoked later.
    """

    kind = "partial_application"

    def __init__(
        self,
        cause: ConnectorError,
        applied: dict[str, Any],
        external_user_id: str | None = None,
        external_email: str | None = None,
    ) -> None:
        self.cause = cause
        self.applied = applied
        self.external_user_id = external_user_id
        self.external_email = external_email
        self.retryable = cause.retryable
        super().__init__(cause.message, {"applied": applied})
