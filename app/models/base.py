"""
DocumentModel — Abstract base class for every persisted entity.

All tables in this service are keyed by an opaque 24-character hexadecimal
identifier (the same shape a document store would hand out), so the HTTP
layer can validate ids before any query is issued. This module adds:
  - ``id`` primary key generated by ``new_object_id()``
  - ``created_at`` / ``updated_at`` timestamps
  - ``is_valid_object_id`` / ``normalize_object_id`` helpers
"""

import re
import secrets
from datetime import datetime, timezone

from app.models import db

OBJECT_ID_LENGTH = 24

_OBJECT_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")


def new_object_id() -> str:
    """Return a fresh 24-hex-character identifier."""
    return secrets.token_hex(OBJECT_ID_LENGTH // 2)


def is_valid_object_id(value) -> bool:
    """True when *value* is a 24-character hexadecimal string."""
    return isinstance(value, str) and bool(_OBJECT_ID_RE.match(value))


def normalize_object_id(value: str) -> str:
    """Lower-case a valid id so string equality is reference equality."""
    return value.lower()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class DocumentModel(db.Model):
    """Abstract base for id-keyed tables with audit timestamps."""
    __abstract__ = True

    id = db.Column(
        db.String(OBJECT_ID_LENGTH),
        primary_key=True,
        default=new_object_id,
    )
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    def _timestamps(self) -> dict:
        return {
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
