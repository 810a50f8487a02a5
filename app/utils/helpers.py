"""Shared utility functions for services and blueprints.

require_object_id:  validate an id's format before it reaches a query
require_text:       required non-blank string field
require_reference:  required id field
get_or_404:         fetch by id or raise NotFoundError
commit_or_raise:    commit, translating constraint violations to ConflictError
current_actor:      identity of the caller for audit records
"""
import logging

from flask import g, has_request_context
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.audit import SYSTEM_ACTOR
from app.models.base import is_valid_object_id, normalize_object_id

logger = logging.getLogger(__name__)


def require_object_id(value, field="id"):
    """Return the normalised id or raise ValidationError for a malformed one."""
    if not is_valid_object_id(value):
        raise ValidationError(
            f"{field} must be a 24-character hexadecimal id",
            details={field: "invalid"},
        )
    return normalize_object_id(value)


def require_object_id_list(values, field):
    """Validate a list of ids, returning them normalised and de-duplicated in order."""
    if not isinstance(values, list):
        raise ValidationError(f"{field} must be a list of ids", details={field: "invalid"})
    result = []
    for value in values:
        oid = require_object_id(value, field)
        if oid not in result:
            result.append(oid)
    return result


def require_text(data, field, *, partial=False):
    """Return the stripped string at data[field] or raise ValidationError.

    With ``partial=True`` (update payloads) an absent field returns None;
    a field that is present must still be a non-blank string.
    """
    if partial and field not in data:
        return None
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", details={field: "required"})
    return value.strip()


def require_reference(data, field):
    """Return the normalised id at data[field]; missing is 'required', malformed is 'invalid'."""
    if data.get(field) in (None, ""):
        raise ValidationError(f"{field} is required", details={field: "required"})
    return require_object_id(data[field], field)


def get_or_404(model, pk, label=None):
    """Fetch a model instance by primary key or raise NotFoundError.

    The id format is checked first so a malformed id never reaches the
    database.
    """
    label = label or model.__name__
    pk = require_object_id(pk)
    obj = db.session.get(model, pk)
    if not obj:
        raise NotFoundError(resource=label, resource_id=pk)
    return obj


def commit_or_raise(duplicate_message=None):
    """Commit the current session.

    IntegrityError → ConflictError (after rollback). Callers guarding a
    unique constraint pass *duplicate_message*; the error is then flagged
    as a duplicate in its details. Anything else rolls back and
    propagates unchanged so it surfaces as an internal error.
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        if duplicate_message:
            raise ConflictError(duplicate_message, details={"reason": "duplicate"}) from exc
        raise ConflictError("Constraint violation") from exc
    except Exception:
        db.session.rollback()
        logger.exception("Unexpected database error on commit")
        raise


def current_actor():
    """Return the authenticated user's id, or ``"system"``.

    Authentication lives outside this service; an outer layer may set
    ``g.current_user`` to a dict carrying an ``id``.
    """
    if has_request_context():
        user = getattr(g, "current_user", None)
        if isinstance(user, dict) and user.get("id"):
            return str(user["id"])
    return SYSTEM_ACTOR
