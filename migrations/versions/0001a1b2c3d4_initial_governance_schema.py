"""initial_governance_schema

Create template, project/instance and audit tables.

Revision ID: 0001a1b2c3d4
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "0001a1b2c3d4"
down_revision = None
branch_labels = None
depends_on = None


def _id(name="id", **kw):
    return sa.Column(name, sa.String(length=24), **kw)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "governance_templates" not in existing_tables:
        op.create_table(
            "governance_templates",
            _id(nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("version", sa.String(length=50), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name", "version", name="uq_governance_template_name_version"),
        )

    if "workflow_templates" not in existing_tables:
        op.create_table(
            "workflow_templates",
            _id(nullable=False),
            _id("governance_template_id", nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
            *_timestamps(),
            sa.ForeignKeyConstraint(
                ["governance_template_id"], ["governance_templates.id"], ondelete="CASCADE",
            ),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_workflow_templates_governance_template_id",
            "workflow_templates", ["governance_template_id"],
        )

    if "checklist_item_templates" not in existing_tables:
        op.create_table(
            "checklist_item_templates",
            _id(nullable=False),
            _id("workflow_template_id", nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("type", sa.String(length=20), nullable=False),
            sa.Column("dependencies_requires", sa.JSON(), nullable=False),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
            *_timestamps(),
            sa.CheckConstraint(
                "type IN ('approval','document','task')",
                name="ck_checklist_item_template_type",
            ),
            sa.ForeignKeyConstraint(
                ["workflow_template_id"], ["workflow_templates.id"], ondelete="CASCADE",
            ),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_checklist_item_templates_workflow_template_id",
            "checklist_item_templates", ["workflow_template_id"],
        )

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            _id(nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            _id("governance_template_id", nullable=False),
            sa.Column("selected_workflow_template_ids", sa.JSON(), nullable=False),
            sa.Column("metadata", sa.JSON(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_projects_governance_template_id", "projects", ["governance_template_id"])

    if "workflow_instances" not in existing_tables:
        op.create_table(
            "workflow_instances",
            _id(nullable=False),
            _id("project_id", nullable=False),
            _id("workflow_template_id", nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
            *_timestamps(),
            sa.CheckConstraint("status IN ('active','completed')", name="ck_workflow_instance_status"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_workflow_instances_project_id", "workflow_instances", ["project_id"])

    if "checklist_item_instances" not in existing_tables:
        op.create_table(
            "checklist_item_instances",
            _id(nullable=False),
            _id("workflow_instance_id", nullable=False),
            _id("checklist_item_template_id", nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("type", sa.String(length=20), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="incomplete"),
            sa.Column("dependencies_requires", sa.JSON(), nullable=False),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            *_timestamps(),
            sa.CheckConstraint(
                "status IN ('incomplete','complete','not_required')",
                name="ck_checklist_item_instance_status",
            ),
            sa.ForeignKeyConstraint(
                ["workflow_instance_id"], ["workflow_instances.id"], ondelete="CASCADE",
            ),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_checklist_item_instances_workflow_instance_id",
            "checklist_item_instances", ["workflow_instance_id"],
        )

    if "audit_logs" not in existing_tables:
        op.create_table(
            "audit_logs",
            _id(nullable=False),
            sa.Column("event_type", sa.String(length=60), nullable=False),
            sa.Column("object_type", sa.String(length=40), nullable=False),
            _id("object_id", nullable=False),
            sa.Column("changes", sa.JSON(), nullable=False),
            sa.Column("changed_by", sa.String(length=150), nullable=False, server_default="system"),
            sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_audit_object", "audit_logs", ["object_type", "object_id"])
        op.create_index("idx_audit_changed_at", "audit_logs", ["changed_at"])


def downgrade():
    op.drop_index("idx_audit_changed_at", table_name="audit_logs")
    op.drop_index("idx_audit_object", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_checklist_item_instances_workflow_instance_id", table_name="checklist_item_instances")
    op.drop_table("checklist_item_instances")
    op.drop_index("ix_workflow_instances_project_id", table_name="workflow_instances")
    op.drop_table("workflow_instances")
    op.drop_index("ix_projects_governance_template_id", table_name="projects")
    op.drop_table("projects")
    op.drop_index("ix_checklist_item_templates_workflow_template_id", table_name="checklist_item_templates")
    op.drop_table("checklist_item_templates")
    op.drop_index("ix_workflow_templates_governance_template_id", table_name="workflow_templates")
    op.drop_table("workflow_templates")
    op.drop_table("governance_templates")
