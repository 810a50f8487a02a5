"""
Project tier — Service Layer.

Business logic for:
    - Project creation: projection of the selected workflow templates of a
      governance template into workflow + checklist item instances
    - Project CRUD (delete cascades to all instances)
    - Workflow instance listing (sorted by checklist progress), get, update

Projection runs in one transaction: the project row, every workflow
instance, every checklist item instance and every remapped dependency edge
are committed together or not at all.
"""

import logging

from app.core.exceptions import ValidationError
from app.models import db
from app.models.base import new_object_id
from app.models.governance import ChecklistItemTemplate, GovernanceTemplate, WorkflowTemplate
from app.models.project import (
    WORKFLOW_INSTANCE_STATUSES,
    ChecklistItemInstance,
    Project,
    WorkflowInstance,
)
from app.services.dependency_graph import sort_workflows_by_progress
from app.utils.helpers import (
    commit_or_raise,
    get_or_404,
    require_object_id_list,
    require_reference,
    require_text,
)

logger = logging.getLogger(__name__)

_INVALID_SELECTION_MSG = (
    "One or more workflow templates are invalid or do not belong to the "
    "specified governance template"
)


# ── Projection ───────────────────────────────────────────────────────────────


def remap_dependencies(
    template_dependencies: list[str],
    owner_by_template: dict[str, str],
    selected_workflow_ids: set[str],
    instance_by_template: dict[str, str],
) -> list[str]:
    """Translate one template's dependency ids into instance ids.

    An edge survives only when the dependency's owning workflow template was
    selected and an instance was created for it; everything else is dropped
    so no instance ever points outside its own project.
    """
    result = []
    for dep_id in template_dependencies or []:
        if owner_by_template.get(dep_id) not in selected_workflow_ids:
            continue
        instance_id = instance_by_template.get(dep_id)
        if instance_id and instance_id not in result:
            result.append(instance_id)
    return result


def _validate_project_payload(data: dict) -> tuple[str, str, list[str]]:
    name = require_text(data, "name")
    governance_id = require_reference(data, "governance_template_id")

    selected = data.get("selected_workflow_template_ids")
    selected = require_object_id_list(
        selected if selected is not None else [], "selected_workflow_template_ids",
    )
    if not selected:
        raise ValidationError(
            "selected_workflow_template_ids must contain at least one id",
            details={"selected_workflow_template_ids": "required"},
        )
    return name, governance_id, selected


def create_project(data: dict) -> Project:
    """
    Create a project and project its selected workflows into instances.

    Args:
        data: ``name``, ``governance_template_id``,
            ``selected_workflow_template_ids`` and optional ``description``
            and ``metadata``.

    Returns:
        The committed Project; its ``workflow_instances`` are populated.

    Raises:
        ValidationError: bad input, unknown governance template, or a
            selection that is not fully owned by the governance template.
    """
    name, governance_id, selected = _validate_project_payload(data)

    if db.session.get(GovernanceTemplate, governance_id) is None:
        raise ValidationError(
            "Governance template not found",
            details={"governance_template_id": "not_found"},
        )

    workflows = (
        WorkflowTemplate.query
        .filter(
            WorkflowTemplate.id.in_(selected),
            WorkflowTemplate.governance_template_id == governance_id,
        )
        .order_by(WorkflowTemplate.order)
        .all()
    )
    if len(workflows) != len(selected):
        raise ValidationError(
            _INVALID_SELECTION_MSG,
            details={"selected_workflow_template_ids": "invalid"},
        )

    selected_set = set(selected)
    try:
        project = Project(
            id=new_object_id(),
            name=name,
            description=data.get("description", ""),
            governance_template_id=governance_id,
            selected_workflow_template_ids=selected,
            metadata_json=data.get("metadata") or {},
        )
        db.session.add(project)

        # Pass 1: clone workflows and items with empty edges
        instance_by_template: dict[str, str] = {}
        instances_by_template: dict[str, ChecklistItemInstance] = {}
        templates: list[ChecklistItemTemplate] = []
        for wt in workflows:
            wi = WorkflowInstance(
                id=new_object_id(),
                project_id=project.id,
                workflow_template_id=wt.id,
                name=wt.name,
                description=wt.description or "",
                metadata_json=dict(wt.metadata_json or {}),
                status="active",
                order=wt.order or 0,
            )
            db.session.add(wi)

            for tpl in wt.checklist_item_templates:
                inst = ChecklistItemInstance(
                    id=new_object_id(),
                    workflow_instance_id=wi.id,
                    checklist_item_template_id=tpl.id,
                    name=tpl.name,
                    description=tpl.description or "",
                    type=tpl.type,
                    status="incomplete",
                    dependencies_requires=[],
                    metadata_json=dict(tpl.metadata_json or {}),
                    order=tpl.order or 0,
                )
                db.session.add(inst)
                instance_by_template[tpl.id] = inst.id
                instances_by_template[tpl.id] = inst
                templates.append(tpl)

        # Pass 2: remap edges into instance space, pruning unselected workflows
        dep_ids = {d for tpl in templates for d in (tpl.dependencies_requires or [])}
        owner_by_template = {tpl.id: tpl.workflow_template_id for tpl in templates}
        unresolved = dep_ids - owner_by_template.keys()
        if unresolved:
            rows = (
                db.session.query(ChecklistItemTemplate.id, ChecklistItemTemplate.workflow_template_id)
                .filter(ChecklistItemTemplate.id.in_(unresolved))
                .all()
            )
            owner_by_template.update({tid: wid for tid, wid in rows})

        pruned = 0
        for tpl in templates:
            if not tpl.dependencies_requires:
                continue
            remapped = remap_dependencies(
                tpl.dependencies_requires, owner_by_template, selected_set, instance_by_template,
            )
            pruned += len(set(tpl.dependencies_requires)) - len(remapped)
            instances_by_template[tpl.id].dependencies_requires = remapped

        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Project creation failed governance_template_id=%s", governance_id)
        raise

    logger.info(
        "Project created id=%s governance_template_id=%s workflows=%d items=%d pruned_edges=%d",
        project.id, governance_id, len(workflows), len(templates), pruned,
    )
    return project


# ── Project CRUD ─────────────────────────────────────────────────────────────


def list_projects() -> list[Project]:
    return Project.query.order_by(Project.created_at.desc()).all()


def get_project(project_id: str) -> Project:
    return get_or_404(Project, project_id, "Project")


def update_project(project_id: str, data: dict) -> Project:
    """Update name, description or metadata.

    The governance template and workflow selection are fixed at creation;
    changing them would orphan the projected instances.
    """
    project = get_project(project_id)
    frozen = [f for f in ("governance_template_id", "selected_workflow_template_ids") if f in data]
    if frozen:
        raise ValidationError(
            "Cannot change the governance template or workflow selection of an existing project",
            details={f: "immutable" for f in frozen},
        )
    if "name" in data:
        project.name = require_text(data, "name", partial=True)
    if "description" in data:
        project.description = data["description"]
    if "metadata" in data:
        project.metadata_json = data["metadata"] or {}
    commit_or_raise()
    logger.info("Project updated id=%s", project.id)
    return project


def delete_project(project_id: str) -> None:
    """Delete a project with all of its workflow and checklist item instances."""
    project = get_project(project_id)
    pid = project.id
    db.session.delete(project)
    commit_or_raise()
    logger.info("Project deleted id=%s", pid)


# ── WorkflowInstance ─────────────────────────────────────────────────────────


def list_workflow_instances(project_id: str) -> list[WorkflowInstance]:
    """Workflow instances of a project, most progressed first.

    Workflows with no checklist items go last; otherwise more completed
    items first, then more items in total.
    """
    project = get_project(project_id)
    workflows = project.workflow_instances.all()
    if not workflows:
        return []

    items = (
        ChecklistItemInstance.query
        .filter(ChecklistItemInstance.workflow_instance_id.in_([w.id for w in workflows]))
        .all()
    )
    items_by_workflow: dict[str, list] = {}
    for item in items:
        items_by_workflow.setdefault(item.workflow_instance_id, []).append(item)
    return sort_workflows_by_progress(workflows, items_by_workflow)


def get_workflow_instance(instance_id: str) -> WorkflowInstance:
    return get_or_404(WorkflowInstance, instance_id, "WorkflowInstance")


def update_workflow_instance(instance_id: str, data: dict) -> WorkflowInstance:
    """Update name, description, metadata or status (``active`` | ``completed``)."""
    wi = get_workflow_instance(instance_id)
    name = require_text(data, "name", partial=True)
    if "status" in data:
        if data["status"] not in WORKFLOW_INSTANCE_STATUSES:
            raise ValidationError(
                f"status must be one of: {', '.join(sorted(WORKFLOW_INSTANCE_STATUSES))}",
                details={"status": "invalid"},
            )
        wi.status = data["status"]
    if name is not None:
        wi.name = name
    if "description" in data:
        wi.description = data["description"]
    if "metadata" in data:
        wi.metadata_json = data["metadata"] or {}
    commit_or_raise()
    logger.info("WorkflowInstance updated id=%s status=%s", wi.id, wi.status)
    return wi
