"""
Template tier — Service Layer.

Business logic for:
    - Governance templates:     CRUD, cascade delete to workflow + checklist item templates
    - Workflow templates:       CRUD, dense ordering within the governance template
    - Checklist item templates: CRUD, dense ordering within the workflow template
    - Dependency maintenance:   self-reference filtering, same-governance-template
                                reference check, cycle rejection, edge cleanup on delete

Cross-workflow dependencies between checklist item templates are allowed as
long as both templates belong to the same governance template; project
creation prunes edges into workflows that were not selected.

db.session.commit() is called only in this layer.
"""

import logging

from app.core.exceptions import ConflictError, ValidationError
from app.models import db
from app.models.base import new_object_id
from app.models.governance import (
    CHECKLIST_ITEM_TYPES,
    ChecklistItemTemplate,
    GovernanceTemplate,
    WorkflowTemplate,
)
from app.services.dependency_graph import find_cycle_dependency
from app.services.ordering import close_gap, move_to_position, next_order
from app.utils.helpers import (
    commit_or_raise,
    get_or_404,
    require_object_id,
    require_object_id_list,
    require_reference,
    require_text,
)

logger = logging.getLogger(__name__)

_DUPLICATE_GOVERNANCE_MSG = "A template with this name and version already exists"


# ── Dependency helpers ───────────────────────────────────────────────────────


def _templates_in_governance(governance_template_id: str) -> list[ChecklistItemTemplate]:
    """All checklist item templates reachable from one governance template."""
    return (
        ChecklistItemTemplate.query
        .join(WorkflowTemplate, ChecklistItemTemplate.workflow_template_id == WorkflowTemplate.id)
        .filter(WorkflowTemplate.governance_template_id == governance_template_id)
        .all()
    )


def _clean_dependencies(
    template_id: str,
    raw_dependencies,
    universe: dict[str, ChecklistItemTemplate],
) -> list[str]:
    """Validate a caller-supplied dependency list.

    The template's own id is dropped silently. Every other id must name a
    checklist item template of the same governance template.
    """
    dep_ids = require_object_id_list(raw_dependencies, "dependencies_requires")
    dep_ids = [d for d in dep_ids if d != template_id]

    unknown = [d for d in dep_ids if d not in universe]
    if unknown:
        raise ValidationError(
            "dependencies_requires may only reference checklist item templates "
            "of the same governance template",
            details={"unknown": unknown},
        )
    return dep_ids


def _reject_cycles(template_id: str, dep_ids: list[str], universe: dict[str, ChecklistItemTemplate]) -> None:
    edges_by_id = {
        tid: list(t.dependencies_requires or [])
        for tid, t in universe.items()
    }
    edges_by_id[template_id] = dep_ids
    offender = find_cycle_dependency(template_id, dep_ids, edges_by_id)
    if offender is not None:
        raise ConflictError(
            "Adding this dependency would create a cycle",
            details={"dependency": offender},
        )


def _pull_dependencies(removed_ids: set[str], governance_template_id: str) -> int:
    """Remove *removed_ids* from every template's dependency list in the governance template.

    Returns the number of templates rewritten.
    """
    touched = 0
    for tpl in _templates_in_governance(governance_template_id):
        deps = list(tpl.dependencies_requires or [])
        kept = [d for d in deps if d not in removed_ids]
        if len(kept) != len(deps):
            tpl.dependencies_requires = kept
            touched += 1
    return touched


# ── GovernanceTemplate CRUD ──────────────────────────────────────────────────


def list_governance_templates() -> list[GovernanceTemplate]:
    """Return governance templates, newest first."""
    return GovernanceTemplate.query.order_by(GovernanceTemplate.created_at.desc()).all()


def get_governance_template(template_id: str) -> GovernanceTemplate:
    return get_or_404(GovernanceTemplate, template_id, "GovernanceTemplate")


def create_governance_template(data: dict) -> GovernanceTemplate:
    """Create a governance template; (name, version) must be unique."""
    tpl = GovernanceTemplate(
        name=require_text(data, "name"),
        version=require_text(data, "version"),
        description=data.get("description", ""),
    )
    db.session.add(tpl)
    commit_or_raise(_DUPLICATE_GOVERNANCE_MSG)
    logger.info("GovernanceTemplate created id=%s name=%s version=%s", tpl.id, tpl.name, tpl.version)
    return tpl


def update_governance_template(template_id: str, data: dict) -> GovernanceTemplate:
    tpl = get_governance_template(template_id)
    values = {f: require_text(data, f, partial=True) for f in ("name", "version") if f in data}
    for f, value in values.items():
        setattr(tpl, f, value)
    if "description" in data:
        tpl.description = data["description"]
    commit_or_raise(_DUPLICATE_GOVERNANCE_MSG)
    logger.info("GovernanceTemplate updated id=%s", tpl.id)
    return tpl


def delete_governance_template(template_id: str) -> None:
    """Delete a governance template and cascade to its workflow and checklist item templates."""
    tpl = get_governance_template(template_id)
    tpl_id = tpl.id
    db.session.delete(tpl)
    commit_or_raise()
    logger.info("GovernanceTemplate deleted id=%s", tpl_id)


# ── WorkflowTemplate CRUD ────────────────────────────────────────────────────


def list_workflow_templates(governance_template_id: str | None = None) -> list[WorkflowTemplate]:
    """Return workflow templates.

    Filtered by governance template they come back in ``order``; unfiltered
    they come back newest first.
    """
    q = WorkflowTemplate.query
    if governance_template_id:
        gid = require_object_id(governance_template_id, "governance_template_id")
        return q.filter_by(governance_template_id=gid).order_by(WorkflowTemplate.order).all()
    return q.order_by(WorkflowTemplate.created_at.desc()).all()


def get_workflow_template(template_id: str) -> WorkflowTemplate:
    return get_or_404(WorkflowTemplate, template_id, "WorkflowTemplate")


def create_workflow_template(data: dict) -> WorkflowTemplate:
    """Append a workflow template to its governance template (order = max + 1)."""
    name = require_text(data, "name")
    governance_id = require_reference(data, "governance_template_id")
    governance = get_or_404(GovernanceTemplate, governance_id, "GovernanceTemplate")
    wt = WorkflowTemplate(
        governance_template_id=governance.id,
        name=name,
        description=data.get("description", ""),
        metadata_json=data.get("metadata") or {},
        order=next_order(WorkflowTemplate, WorkflowTemplate.governance_template_id, governance.id),
    )
    db.session.add(wt)
    commit_or_raise()
    logger.info("WorkflowTemplate created id=%s governance_template_id=%s order=%s",
                wt.id, wt.governance_template_id, wt.order)
    return wt


def update_workflow_template(template_id: str, data: dict) -> WorkflowTemplate:
    """Update mutable fields; ``order`` runs the insert-and-shift move."""
    wt = get_workflow_template(template_id)
    if "name" in data:
        wt.name = require_text(data, "name", partial=True)
    if "description" in data:
        wt.description = data["description"]
    if "metadata" in data:
        wt.metadata_json = data["metadata"] or {}
    if "order" in data:
        move_to_position(wt, WorkflowTemplate.governance_template_id, data["order"])
    commit_or_raise()
    logger.info("WorkflowTemplate updated id=%s", wt.id)
    return wt


def delete_workflow_template(template_id: str) -> None:
    """Delete a workflow template with its checklist item templates.

    Dependency edges into the removed item templates are pulled from the
    rest of the governance template, and sibling orders are closed up.
    """
    wt = get_workflow_template(template_id)
    wt_id, governance_id, removed_order = wt.id, wt.governance_template_id, wt.order
    removed_item_ids = {t.id for t in wt.checklist_item_templates}

    db.session.delete(wt)
    db.session.flush()
    if removed_item_ids:
        _pull_dependencies(removed_item_ids, governance_id)
    close_gap(WorkflowTemplate, WorkflowTemplate.governance_template_id, governance_id, removed_order)
    commit_or_raise()
    logger.info("WorkflowTemplate deleted id=%s (with %d checklist item templates)",
                wt_id, len(removed_item_ids))


# ── ChecklistItemTemplate CRUD ───────────────────────────────────────────────


def list_checklist_item_templates(workflow_template_id: str | None = None) -> list[ChecklistItemTemplate]:
    q = ChecklistItemTemplate.query
    if workflow_template_id:
        wid = require_object_id(workflow_template_id, "workflow_template_id")
        return q.filter_by(workflow_template_id=wid).order_by(ChecklistItemTemplate.order).all()
    return q.order_by(ChecklistItemTemplate.created_at.desc()).all()


def get_checklist_item_template(template_id: str) -> ChecklistItemTemplate:
    return get_or_404(ChecklistItemTemplate, template_id, "ChecklistItemTemplate")


def _validate_type(item_type) -> str:
    if item_type not in CHECKLIST_ITEM_TYPES:
        raise ValidationError(
            f"type must be one of: {', '.join(sorted(CHECKLIST_ITEM_TYPES))}",
            details={"type": "invalid"},
        )
    return item_type


def create_checklist_item_template(data: dict) -> ChecklistItemTemplate:
    """Append a checklist item template to its workflow template (order = max + 1).

    A brand-new template has no dependents yet, so its dependency list
    cannot close a cycle.
    """
    name = require_text(data, "name")
    item_type = _validate_type(data.get("type"))
    workflow_id = require_reference(data, "workflow_template_id")
    wt = get_or_404(WorkflowTemplate, workflow_id, "WorkflowTemplate")
    tpl_id = new_object_id()

    dep_ids = []
    if data.get("dependencies_requires"):
        universe = {t.id: t for t in _templates_in_governance(wt.governance_template_id)}
        dep_ids = _clean_dependencies(tpl_id, data["dependencies_requires"], universe)

    tpl = ChecklistItemTemplate(
        id=tpl_id,
        workflow_template_id=wt.id,
        name=name,
        description=data.get("description", ""),
        type=item_type,
        dependencies_requires=dep_ids,
        metadata_json=data.get("metadata") or {},
        order=next_order(ChecklistItemTemplate, ChecklistItemTemplate.workflow_template_id, wt.id),
    )
    db.session.add(tpl)
    commit_or_raise()
    logger.info("ChecklistItemTemplate created id=%s workflow_template_id=%s order=%s",
                tpl.id, tpl.workflow_template_id, tpl.order)
    return tpl


def update_checklist_item_template(template_id: str, data: dict) -> ChecklistItemTemplate:
    """Update mutable fields on a checklist item template.

    ``dependencies_requires`` loses the template's own id, must stay inside
    the governance template and must not close a cycle. ``order`` runs the
    insert-and-shift move.
    """
    tpl = get_checklist_item_template(template_id)

    if "name" in data:
        tpl.name = require_text(data, "name", partial=True)
    if "description" in data:
        tpl.description = data["description"]
    if "type" in data:
        tpl.type = _validate_type(data["type"])
    if "metadata" in data:
        tpl.metadata_json = data["metadata"] or {}

    if "dependencies_requires" in data:
        governance_id = tpl.workflow_template.governance_template_id
        universe = {t.id: t for t in _templates_in_governance(governance_id)}
        dep_ids = _clean_dependencies(tpl.id, data["dependencies_requires"], universe)
        _reject_cycles(tpl.id, dep_ids, universe)
        tpl.dependencies_requires = dep_ids

    if "order" in data:
        move_to_position(tpl, ChecklistItemTemplate.workflow_template_id, data["order"])

    commit_or_raise()
    logger.info("ChecklistItemTemplate updated id=%s", tpl.id)
    return tpl


def delete_checklist_item_template(template_id: str) -> None:
    """Delete a checklist item template.

    In one transaction: pull its id from every other template of the same
    governance template, remove it, then close the order gap among its
    siblings.
    """
    tpl = get_checklist_item_template(template_id)
    tpl_id, workflow_id, removed_order = tpl.id, tpl.workflow_template_id, tpl.order
    governance_id = tpl.workflow_template.governance_template_id

    touched = _pull_dependencies({tpl_id}, governance_id)
    db.session.delete(tpl)
    db.session.flush()
    close_gap(ChecklistItemTemplate, ChecklistItemTemplate.workflow_template_id, workflow_id, removed_order)
    commit_or_raise()
    logger.info("ChecklistItemTemplate deleted id=%s (edges pulled from %d templates)", tpl_id, touched)
