"""
Scheduler-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere. "Blocked" and "not blocked"
results from the gate and scheduling-block engines are NOT exceptions — they
are ordinary return values. Exceptions here mean the request itself cannot
be honoured.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Home", resource_id=42)
    raise DependencyCycleError(["Frame walls", "Set trusses"])
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Cross-tenant lookups raise this too, so a 404 never confirms that a
    record exists for another tenant.

    Args:
        resource: Human-readable model/entity name (e.g. "Home", "HomeTask").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
        tenant_id: Optional — the scope that was enforced. For debug logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        tenant_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.tenant_id = tenant_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if tenant_id is not None:
            msg += f" (tenant={tenant_id})"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    The data was well-formed but violated a rule (invalid status transition,
    self-dependency, unknown template item). Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class DependencyCycleError(ValidationError):
    """Raised when template dependency edges reachable from a home form a cycle.

    Fatal for the forecast of that home (or for the template edit that would
    introduce it). Carries the names of the tasks/items Kahn's algorithm
    could not order so an operator can find the offending edge.
    """

    def __init__(self, task_names: list[str], context: str = "this home") -> None:
        self.task_names = list(task_names)
        message = (
            f"Dependency cycle detected in template items affecting {context}: "
            f"{', '.join(self.task_names)}"
        )
        super().__init__(message, details={"task_names": self.task_names})


class SchedulingBlockedError(Exception):
    """Raised when a caller tries to set a scheduled date on a blocked task.

    `reason` is the human-readable block reason from the scheduling-block
    resolver. Maps to HTTP 409.
    """

    def __init__(self, task_id: int, reason: str) -> None:
        self.task_id = task_id
        self.reason = reason
        super().__init__(reason)
