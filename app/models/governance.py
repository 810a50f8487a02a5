"""
Governance Checklist API
Template domain models.

Models:
    - GovernanceTemplate:     reusable definition of a governance process (unique name + version)
    - WorkflowTemplate:       ordered phase within a governance template
    - ChecklistItemTemplate:  gate/task definition within a workflow template,
                              with ``dependencies_requires`` edges to other item templates

Architecture:
    GovernanceTemplate ──1:N──▶ WorkflowTemplate ──1:N──▶ ChecklistItemTemplate
    ChecklistItemTemplate ──N:M──▶ ChecklistItemTemplate  (id list in dependencies_requires)

Ordering:
    WorkflowTemplate.order       dense, zero-based within its governance template
    ChecklistItemTemplate.order  dense, zero-based within its workflow template
"""

from app.models import db
from app.models.base import OBJECT_ID_LENGTH, DocumentModel


# ── Constants ────────────────────────────────────────────────────────────────

CHECKLIST_ITEM_TYPES = {"approval", "document", "task"}


# ═════════════════════════════════════════════════════════════════════════════
# 1. GovernanceTemplate
# ═════════════════════════════════════════════════════════════════════════════


class GovernanceTemplate(DocumentModel):
    """Top-level reusable governance process definition."""

    __tablename__ = "governance_templates"

    name = db.Column(db.String(200), nullable=False)
    version = db.Column(db.String(50), nullable=False)
    description = db.Column(db.Text, default="")

    __table_args__ = (
        db.UniqueConstraint("name", "version", name="uq_governance_template_name_version"),
    )

    workflow_templates = db.relationship(
        "WorkflowTemplate", backref="governance_template", lazy="dynamic",
        cascade="all, delete-orphan", order_by="WorkflowTemplate.order",
    )

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "description": self.description,
            **self._timestamps(),
        }
        if include_children:
            result["workflow_templates"] = [w.to_dict() for w in self.workflow_templates]
        return result

    def __repr__(self):
        return f"<GovernanceTemplate {self.id}: {self.name} v{self.version}>"


# ═════════════════════════════════════════════════════════════════════════════
# 2. WorkflowTemplate
# ═════════════════════════════════════════════════════════════════════════════


class WorkflowTemplate(DocumentModel):
    """Ordered phase within a governance template."""

    __tablename__ = "workflow_templates"

    governance_template_id = db.Column(
        db.String(OBJECT_ID_LENGTH),
        db.ForeignKey("governance_templates.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    metadata_json = db.Column("metadata", db.JSON, default=dict)
    order = db.Column(
        db.Integer, nullable=False, default=0,
        comment="Dense zero-based position within the governance template",
    )

    checklist_item_templates = db.relationship(
        "ChecklistItemTemplate", backref="workflow_template", lazy="dynamic",
        cascade="all, delete-orphan", order_by="ChecklistItemTemplate.order",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "governance_template_id": self.governance_template_id,
            "name": self.name,
            "description": self.description,
            "metadata": self.metadata_json or {},
            "order": self.order,
            **self._timestamps(),
        }

    def __repr__(self):
        return f"<WorkflowTemplate {self.id}: #{self.order} {self.name}>"


# ═════════════════════════════════════════════════════════════════════════════
# 3. ChecklistItemTemplate
# ═════════════════════════════════════════════════════════════════════════════


class ChecklistItemTemplate(DocumentModel):
    """
    A single gate/task definition within a workflow template.

    ``dependencies_requires`` holds ids of other item templates in the same
    governance template that must be completed first. Edges may cross
    workflow boundaries; project creation prunes the ones whose target
    workflow is not selected.
    """

    __tablename__ = "checklist_item_templates"

    workflow_template_id = db.Column(
        db.String(OBJECT_ID_LENGTH),
        db.ForeignKey("workflow_templates.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    type = db.Column(
        db.String(20), nullable=False,
        comment="approval | document | task",
    )
    dependencies_requires = db.Column(db.JSON, nullable=False, default=list)
    metadata_json = db.Column("metadata", db.JSON, default=dict)
    order = db.Column(
        db.Integer, nullable=False, default=0,
        comment="Dense zero-based position within the workflow template",
    )

    __table_args__ = (
        db.CheckConstraint(
            "type IN ('approval','document','task')",
            name="ck_checklist_item_template_type",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "workflow_template_id": self.workflow_template_id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "dependencies_requires": list(self.dependencies_requires or []),
            "metadata": self.metadata_json or {},
            "order": self.order,
            **self._timestamps(),
        }

    def __repr__(self):
        return f"<ChecklistItemTemplate {self.id}: #{self.order} {self.name[:40]}>"
