"""
Governance Checklist API
Blueprint registry and shared request helpers.
"""

from flask import jsonify, request

from app.core.exceptions import ValidationError


def json_body() -> dict:
    """Return the request's JSON object, or an empty dict for a missing body."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def require_fields(data: dict, *fields: str) -> None:
    """Raise ValidationError naming every missing or blank field."""
    missing = [f for f in fields if data.get(f) in (None, "", [])]
    if missing:
        raise ValidationError(
            f"{' and '.join(missing)} {'is' if len(missing) == 1 else 'are'} required",
            details={f: "required" for f in missing},
        )


def list_response(items, **extra):
    """Standard list envelope: ``{"items": [...], "total": n}``."""
    rows = [i if isinstance(i, dict) else i.to_dict() for i in items]
    return jsonify({"items": rows, "total": len(rows), **extra})
