"""
Shared blueprint plumbing: error handler registration and actor access.

Every API blueprint calls ``register_error_handlers(bp)`` once at import
time so service exceptions map to the same HTTP statuses everywhere:

    NotFoundError      404
    UnauthorizedError  403
    ValidationError    422
    ConflictError      409
    InternalError      500 (generic body, details only in logs)
"""

from __future__ import annotations

import logging

from flask import g, request
from werkzeug.exceptions import HTTPException

from stepwise.core.exceptions import (
    ConflictError,
    InternalError,
    NotFoundError,
    StepwiseError,
    UnauthorizedError,
    ValidationError,
)
from stepwise.utils.errors import E, api_error

logger = logging.getLogger(__name__)


class ActorRequired(Exception):
    """No authenticated actor on a request that needs one (HTTP 401)."""


def current_actor() -> str | None:
    return getattr(g, "actor_id", None)


def require_actor() -> str:
    actor_id = current_actor()
    if not actor_id:
        raise ActorRequired()
    return actor_id


def json_body() -> dict:
    """Request JSON as a dict; anything else is treated as an empty body."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _details(error: StepwiseError) -> dict:
    details = dict(error.details)
    details.setdefault("code", error.code)
    return details


def register_error_handlers(bp) -> None:
    """Attach the standard exception -> JSON mapping to ``bp``."""

    @bp.errorhandler(ActorRequired)
    def _handle_actor_required(error):
        return api_error(E.UNAUTHENTICATED, "Authentication required")

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, error.message, details=_details(error))

    @bp.errorhandler(UnauthorizedError)
    def _handle_unauthorized(error: UnauthorizedError):
        return api_error(E.FORBIDDEN, error.message, details=_details(error))

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_CONSTRAINT, error.message, details=_details(error))

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        return api_error(E.CONFLICT_DUPLICATE, error.message, details=_details(error))

    @bp.errorhandler(InternalError)
    def _handle_internal(error: InternalError):
        logger.error(
            "Internal error in %s endpoint=%s code=%s: %s",
            bp.name, request.endpoint, error.code, error.message,
        )
        return api_error(E.INTERNAL, "Internal server error", details={"code": error.code})

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")
