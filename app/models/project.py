"""
Governance Checklist API
Project / instance domain models.

Models:
    - Project:                concrete instantiation of a governance template
    - WorkflowInstance:       runtime clone of a selected workflow template
    - ChecklistItemInstance:  runtime clone of a checklist item template with live status

Architecture:
    Project ──1:N──▶ WorkflowInstance ──1:N──▶ ChecklistItemInstance
    ChecklistItemInstance ──N:M──▶ ChecklistItemInstance  (instance ids in dependencies_requires)

Lifecycle states:
    WorkflowInstance:       active → completed  (manual only)
    ChecklistItemInstance:  incomplete ⇄ complete ⇄ not_required
                            (→ complete requires every dependency to be complete)
"""

from app.models import db
from app.models.base import OBJECT_ID_LENGTH, DocumentModel


# ── Constants ────────────────────────────────────────────────────────────────

WORKFLOW_INSTANCE_STATUSES = {"active", "completed"}

CHECKLIST_ITEM_STATUSES = {"incomplete", "complete", "not_required"}


# ═════════════════════════════════════════════════════════════════════════════
# 1. Project
# ═════════════════════════════════════════════════════════════════════════════


class Project(DocumentModel):
    """A governance template instantiated with a chosen subset of workflows."""

    __tablename__ = "projects"

    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    governance_template_id = db.Column(
        db.String(OBJECT_ID_LENGTH), nullable=False, index=True,
        comment="Source governance template (provenance only)",
    )
    selected_workflow_template_ids = db.Column(db.JSON, nullable=False, default=list)
    metadata_json = db.Column("metadata", db.JSON, default=dict)

    workflow_instances = db.relationship(
        "WorkflowInstance", backref="project", lazy="dynamic",
        cascade="all, delete-orphan", order_by="WorkflowInstance.order",
    )

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "governance_template_id": self.governance_template_id,
            "selected_workflow_template_ids": list(self.selected_workflow_template_ids or []),
            "metadata": self.metadata_json or {},
            **self._timestamps(),
        }
        if include_children:
            result["workflow_instances"] = [w.to_dict() for w in self.workflow_instances]
        return result

    def __repr__(self):
        return f"<Project {self.id}: {self.name}>"


# ═════════════════════════════════════════════════════════════════════════════
# 2. WorkflowInstance
# ═════════════════════════════════════════════════════════════════════════════


class WorkflowInstance(DocumentModel):
    """Runtime clone of a workflow template, scoped to one project."""

    __tablename__ = "workflow_instances"

    project_id = db.Column(
        db.String(OBJECT_ID_LENGTH),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    workflow_template_id = db.Column(
        db.String(OBJECT_ID_LENGTH), nullable=False,
        comment="Source workflow template (provenance only)",
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    metadata_json = db.Column("metadata", db.JSON, default=dict)
    status = db.Column(
        db.String(20), nullable=False, default="active",
        comment="active | completed",
    )
    order = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('active','completed')",
            name="ck_workflow_instance_status",
        ),
    )

    checklist_item_instances = db.relationship(
        "ChecklistItemInstance", backref="workflow_instance", lazy="dynamic",
        cascade="all, delete-orphan", order_by="ChecklistItemInstance.order",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "workflow_template_id": self.workflow_template_id,
            "name": self.name,
            "description": self.description,
            "metadata": self.metadata_json or {},
            "status": self.status,
            "order": self.order,
            **self._timestamps(),
        }

    def __repr__(self):
        return f"<WorkflowInstance {self.id}: {self.name} [{self.status}]>"


# ═════════════════════════════════════════════════════════════════════════════
# 3. ChecklistItemInstance
# ═════════════════════════════════════════════════════════════════════════════


class ChecklistItemInstance(DocumentModel):
    """
    Runtime clone of a checklist item template.

    ``dependencies_requires`` only ever holds ids of instances created in the
    same project-creation batch and is never writable through the API.
    ``version`` is bumped by every status write and guards the conditional
    UPDATE issued by the status gate.
    """

    __tablename__ = "checklist_item_instances"

    workflow_instance_id = db.Column(
        db.String(OBJECT_ID_LENGTH),
        db.ForeignKey("workflow_instances.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    checklist_item_template_id = db.Column(
        db.String(OBJECT_ID_LENGTH), nullable=False,
        comment="Source template (provenance only)",
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    type = db.Column(db.String(20), nullable=False, comment="approval | document | task")
    status = db.Column(
        db.String(20), nullable=False, default="incomplete",
        comment="incomplete | complete | not_required",
    )
    dependencies_requires = db.Column(db.JSON, nullable=False, default=list)
    metadata_json = db.Column("metadata", db.JSON, default=dict)
    order = db.Column(db.Integer, nullable=False, default=0)
    version = db.Column(db.Integer, nullable=False, default=1)

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('incomplete','complete','not_required')",
            name="ck_checklist_item_instance_status",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "workflow_instance_id": self.workflow_instance_id,
            "checklist_item_template_id": self.checklist_item_template_id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "status": self.status,
            "dependencies_requires": list(self.dependencies_requires or []),
            "metadata": self.metadata_json or {},
            "order": self.order,
            "version": self.version,
            **self._timestamps(),
        }

    def __repr__(self):
        return f"<ChecklistItemInstance {self.id}: {self.name[:40]} [{self.status}]>"
