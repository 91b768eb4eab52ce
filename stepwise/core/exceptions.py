"""
Platform-wide exception hierarchy.

Every service raises one of these types; blueprints register handlers
against them once (``stepwise.blueprints.register_error_handlers``) and get
consistent HTTP status codes everywhere.

Each class carries an ``ErrorKind`` so callers can discriminate failures
without string matching, plus a machine-readable ``code`` naming the precise
failure (e.g. ``SourceNotAvailable``, ``SchemaViolation``).

Usage:
    from stepwise.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Project", resource_id=project_id)
    raise ValidationError("title is required", details={"title": "required"})
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    INTERNAL = "internal"


class StepwiseError(Exception):
    """Base class. Never raised directly."""

    kind: ErrorKind = ErrorKind.INTERNAL
    default_code = "Error"

    def __init__(self, message: str, code: str | None = None, details: dict | None = None) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(message)


class NotFoundError(StepwiseError):
    """Raised when a resource does not exist or is hidden by visibility rules.

    Security note: drafts and unapproved projects owned by someone else raise
    this too, so a caller cannot probe for the existence of hidden content.

    Args:
        resource: Human-readable entity name (e.g. "Project", "Comment").
        resource_id: The id that was looked up. Included in logs, not in HTTP body.
        code: Specific failure code; defaults to ``NotFound``.
    """

    kind = ErrorKind.NOT_FOUND
    default_code = "NotFound"

    def __init__(
        self,
        resource: str,
        resource_id: str | int | None = None,
        code: str | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(message or f"{resource} not found", code=code)


class UnauthorizedError(StepwiseError):
    """Raised when the actor lacks the specific permission for an operation.

    Permissions are per operation: comment authorship (delete), project
    ownership (edit, append, delete) and pin rights (project owner).
    """

    kind = ErrorKind.UNAUTHORIZED
    default_code = "Unauthorized"


class ValidationError(StepwiseError):
    """Raised when input is malformed or violates a business rule.

    Maps to HTTP 422 in blueprint error handlers, except ingestion failures
    which map to 400 (the pasted text itself is malformed).

    Args:
        message: Human-readable explanation of what failed.
        code: e.g. ``SchemaViolation``, ``CannotPinOwnComment``.
        details: Field-level breakdown. Keys are field paths.
    """

    kind = ErrorKind.VALIDATION
    default_code = "Validation"


class ConflictError(StepwiseError):
    """Raised when a unique value cannot be produced or would be duplicated.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field that collides.
        value: The conflicting value (full value in logs only).
    """

    kind = ErrorKind.CONFLICT
    default_code = "Conflict"

    def __init__(
        self,
        resource: str,
        field: str,
        value: str | None = None,
        code: str | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = message or f"{resource} with {field}={value!r} already exists"
        super().__init__(msg, code=code)


class InternalError(StepwiseError):
    """Storage failure or broken invariant (e.g. authenticated actor without a profile).

    Maps to HTTP 500. The message is logged; the HTTP body stays generic.
    """

    kind = ErrorKind.INTERNAL
    default_code = "Internal"
