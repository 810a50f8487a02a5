"""
Governance Checklist API
Audit domain model.

Models:
    - AuditLog: immutable, append-only audit trail for checklist item status changes.
"""

from app.models import db
from app.models.base import OBJECT_ID_LENGTH, isoformat, new_object_id, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

OBJECT_CHECKLIST_ITEM = "checklist_item_instance"

EVENT_STATUS_CHANGE = "checklist_item_status_change"

SYSTEM_ACTOR = "system"


class AuditLog(db.Model):
    """
    Immutable audit trail for every status change.

    One row per change. ``changes`` carries ``{"status": {"from", "to"}}``.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_object", "object_type", "object_id"),
        db.Index("idx_audit_changed_at", "changed_at"),
    )

    id = db.Column(db.String(OBJECT_ID_LENGTH), primary_key=True, default=new_object_id)

    event_type = db.Column(
        db.String(60), nullable=False,
        comment="checklist_item_status_change",
    )
    object_type = db.Column(
        db.String(40), nullable=False,
        comment="checklist_item_instance",
    )
    object_id = db.Column(db.String(OBJECT_ID_LENGTH), nullable=False)

    changes = db.Column(db.JSON, nullable=False, default=dict)
    changed_by = db.Column(
        db.String(150), nullable=False, default=SYSTEM_ACTOR,
        comment="Actor id, or 'system' when unauthenticated",
    )
    changed_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=utcnow,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "object_type": self.object_type,
            "object_id": self.object_id,
            "changes": self.changes or {},
            "changed_by": self.changed_by,
            "changed_at": isoformat(self.changed_at),
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.event_type} on {self.object_type}/{self.object_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_status_audit(
    *,
    object_id: str,
    old_status: str,
    new_status: str,
    actor: str | None = None,
) -> AuditLog:
    """
    Append a single status-change audit row.  Uses ``flush`` so callers keep
    transaction control.

    Returns the (flushed) AuditLog instance.
    """
    log = AuditLog(
        event_type=EVENT_STATUS_CHANGE,
        object_type=OBJECT_CHECKLIST_ITEM,
        object_id=object_id,
        changes={"status": {"from": old_status, "to": new_status}},
        changed_by=actor or SYSTEM_ACTOR,
    )
    db.session.add(log)
    db.session.flush()
    return log
