"""
Service-level exception hierarchy.

Services raise these types; blueprints register handlers against them once
(see ``app.utils.errors.register_error_handlers``) and get consistent HTTP
status codes everywhere:

    NotFoundError            → 404
    ValidationError          → 400
    ConflictError            → 409
    PreconditionFailedError  → 412

Anything else escaping a service is an internal failure and maps to 500.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="ChecklistItemInstance", resource_id=iid)
    raise ValidationError("name is required", details={"name": "required"})
"""


class NotFoundError(Exception):
    """Raised when a referenced entity does not exist at lookup time.

    Args:
        resource: Human-readable entity name (e.g. "Project", "WorkflowTemplate").
        resource_id: The id that was looked up. Included in logs and message.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is malformed or violates a business rule.

    Covers malformed ids, missing required fields, forbidden fields in a
    patch and invalid workflow selections.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when a write collides with existing state.

    Duplicate unique keys, dependency edges that would close a cycle, and
    status writes that lost a race against a concurrent update.

    Args:
        message: Human-readable explanation.
        details: Optional structured payload.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class PreconditionFailedError(Exception):
    """Raised when a checklist item cannot be completed yet.

    ``details["blocking"]`` lists the dependencies that are not complete
    (``status`` is ``None`` for a dependency that no longer exists).
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)
