"""Standardised API error responses.

Usage
-----
    from app.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Project not found")
    return api_error(E.VALIDATION_REQUIRED, "name is required")
    return api_error(E.PRECONDITION_FAILED, "Dependencies incomplete",
                     details={"blocking": [...]})

Blueprints call ``register_error_handlers(bp)`` once so service exceptions
become JSON bodies with consistent status codes.
"""

from __future__ import annotations

import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from app.core.exceptions import (
    ConflictError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / duplicate – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Dependency gate – HTTP 412
    PRECONDITION_FAILED = "ERR_PRECONDITION_FAILED"

    # Server – HTTP 500
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.PRECONDITION_FAILED: 412,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (blocking dependency ids, field errors).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def register_error_handlers(bp) -> None:
    """Attach the service-exception → HTTP mapping to a blueprint."""

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        details = error.details
        missing = bool(details) and all(v == "required" for v in details.values())
        code = E.VALIDATION_REQUIRED if missing else E.VALIDATION_INVALID
        return api_error(code, str(error), details=details)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        duplicate = error.details.get("reason") == "duplicate"
        code = E.CONFLICT_DUPLICATE if duplicate else E.CONFLICT_STATE
        return api_error(code, str(error), details=error.details)

    @bp.errorhandler(PreconditionFailedError)
    def _handle_precondition(error: PreconditionFailedError):
        return api_error(E.PRECONDITION_FAILED, str(error), details=error.details)

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return jsonify({"error": error.description or error.name}), error.code
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")
