"""
Checklist item instance — Service Layer.

    - update_status:      status gate (dependencies must be complete first),
                          conditional write guarded by ``version``, best-effort audit
    - update_instance:    patch with type-specific metadata rules; the
                          dependency set is never writable
    - list_for_workflow:  topologically ordered items of one workflow instance
    - list_for_project:   grouped view across a project (workflow, then status bucket)
    - get_instance, list_audit

The gate's precondition is embedded in the UPDATE filter as well as checked
up front, so a concurrent change to the item or to one of its dependencies
makes the write affect zero rows and surfaces as a ConflictError.
"""

import logging

from sqlalchemy import func, select, update
from sqlalchemy.orm import aliased

from app.core.exceptions import ConflictError, PreconditionFailedError, ValidationError
from app.models import db
from app.models.audit import OBJECT_CHECKLIST_ITEM, AuditLog, write_status_audit
from app.models.base import isoformat, utcnow
from app.models.project import (
    CHECKLIST_ITEM_STATUSES,
    ChecklistItemInstance,
    Project,
    WorkflowInstance,
)
from app.services.dependency_graph import grouped_order, is_available, topological_order
from app.utils.helpers import current_actor, get_or_404, require_text

logger = logging.getLogger(__name__)

DEPENDENCIES_MANAGED_MSG = "Cannot update dependencies - they are managed by the system"

_UPDATABLE_FIELDS = ("name", "description", "status", "metadata", "order")


# ── Reads ────────────────────────────────────────────────────────────────────


def get_instance(instance_id: str) -> ChecklistItemInstance:
    return get_or_404(ChecklistItemInstance, instance_id, "ChecklistItemInstance")


def _with_availability(items: list[ChecklistItemInstance], status_by_id: dict[str, str]) -> list[dict]:
    result = []
    for item in items:
        d = item.to_dict()
        d["available"] = is_available(item, status_by_id)
        result.append(d)
    return result


def list_for_workflow(workflow_instance_id: str) -> list[dict]:
    """
    Checklist items of a workflow instance in dependency order.

    Items are read in ``order`` so ties fall back to the template order.
    Items on a dependency cycle cannot be placed; they are left out and
    logged rather than failing the whole listing.
    """
    wi = get_or_404(WorkflowInstance, workflow_instance_id, "WorkflowInstance")
    items = wi.checklist_item_instances.all()

    result = topological_order(items)
    if result.has_cycles:
        logger.warning(
            "Dependency cycle in workflow_instance=%s, excluded items: %s",
            wi.id, result.excluded_ids,
        )
    # availability is judged against the whole workflow, excluded items included,
    # plus any dependencies living in other workflows of the project
    status_by_id = {i.id: i.status for i in items}
    outside = {d for i in items for d in (i.dependencies_requires or []) if d not in status_by_id}
    if outside:
        rows = (
            db.session.query(ChecklistItemInstance.id, ChecklistItemInstance.status)
            .filter(ChecklistItemInstance.id.in_(list(outside)))
            .all()
        )
        status_by_id.update({rid: status for rid, status in rows})
    return _with_availability(result.ordered, status_by_id)


def list_for_project(project_id: str) -> list[dict]:
    """All checklist items of a project grouped by workflow name, done items first."""
    project = get_or_404(Project, project_id, "Project")
    workflows = {w.id: w for w in project.workflow_instances}
    if not workflows:
        return []

    items = (
        ChecklistItemInstance.query
        .filter(ChecklistItemInstance.workflow_instance_id.in_(list(workflows)))
        .order_by(ChecklistItemInstance.order)
        .all()
    )
    result = grouped_order(items, lambda i: workflows[i.workflow_instance_id].name)
    if result.has_cycles:
        logger.warning(
            "Dependency cycle in project=%s, excluded items: %s",
            project.id, result.excluded_ids,
        )

    rows = _with_availability(result.ordered, {i.id: i.status for i in items})
    for item, row in zip(result.ordered, rows):
        row["workflow_name"] = workflows[item.workflow_instance_id].name
    return rows


def list_audit(instance_id: str) -> list[AuditLog]:
    inst = get_instance(instance_id)
    return (
        AuditLog.query
        .filter_by(object_type=OBJECT_CHECKLIST_ITEM, object_id=inst.id)
        .order_by(AuditLog.changed_at)
        .all()
    )


# ── Status gate ──────────────────────────────────────────────────────────────


def _validate_status(status) -> str:
    if status not in CHECKLIST_ITEM_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(sorted(CHECKLIST_ITEM_STATUSES))}",
            details={"status": "invalid"},
        )
    return status


def _blocking_dependencies(dep_ids: list[str]) -> list[dict]:
    """Dependencies that are not ``complete``; missing ones carry ``status: None``."""
    rows = (
        db.session.query(ChecklistItemInstance.id, ChecklistItemInstance.status)
        .filter(ChecklistItemInstance.id.in_(dep_ids))
        .all()
    )
    status_by_id = {rid: status for rid, status in rows}
    return [
        {"id": dep_id, "status": status_by_id.get(dep_id)}
        for dep_id in dep_ids
        if status_by_id.get(dep_id) != "complete"
    ]


def _check_gate(inst: ChecklistItemInstance, new_status: str) -> None:
    deps = list(inst.dependencies_requires or [])
    if new_status != "complete" or not deps:
        return
    blocking = _blocking_dependencies(deps)
    if blocking:
        logger.warning(
            "Completion refused checklist_item_instance=%s blocking=%s",
            inst.id, [b["id"] for b in blocking],
        )
        raise PreconditionFailedError(
            "Cannot mark as complete - dependencies are not complete",
            details={"blocking": blocking},
        )


def _conditional_write(inst: ChecklistItemInstance, values: dict, new_status: str | None) -> None:
    """Write *values* iff the row still has the version we read.

    For a transition to ``complete`` the filter also requires every
    dependency to still be complete.
    """
    inst_id, read_version = inst.id, inst.version
    conditions = [
        ChecklistItemInstance.id == inst_id,
        ChecklistItemInstance.version == read_version,
    ]
    deps = list(inst.dependencies_requires or [])
    if new_status == "complete" and deps:
        dep = aliased(ChecklistItemInstance)
        complete_deps = (
            select(func.count(dep.id))
            .where(dep.id.in_(deps), dep.status == "complete")
            .scalar_subquery()
        )
        conditions.append(complete_deps == len(deps))

    values = {**values, ChecklistItemInstance.version: read_version + 1}
    result = db.session.execute(
        update(ChecklistItemInstance).where(*conditions).values(values),
        execution_options={"synchronize_session": False},
    )
    if result.rowcount == 0:
        db.session.rollback()
        logger.warning("Concurrent modification checklist_item_instance=%s version=%s", inst_id, read_version)
        raise ConflictError(
            "Checklist item was modified concurrently, reload and retry",
            details={"version": read_version},
        )
    db.session.commit()


def _record_audit(instance_id: str, old_status: str, new_status: str, actor: str) -> None:
    """Audit the status change in its own transaction; never undoes the change."""
    try:
        write_status_audit(
            object_id=instance_id, old_status=old_status, new_status=new_status, actor=actor,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception(
            "Failed to record audit log checklist_item_instance=%s %s → %s",
            instance_id, old_status, new_status,
        )


def update_status(instance_id: str, new_status: str, actor: str | None = None) -> ChecklistItemInstance:
    """
    Transition a checklist item instance to *new_status*.

    Moving to ``complete`` requires every dependency to exist and be
    ``complete``; otherwise PreconditionFailedError is raised and the status
    stays as it was. Other transitions are free.

    Raises:
        NotFoundError: instance does not exist.
        ValidationError: unknown status.
        PreconditionFailedError: dependencies incomplete.
        ConflictError: the item or a dependency changed while writing.
    """
    inst = get_instance(instance_id)
    _validate_status(new_status)
    actor = actor or current_actor()

    _check_gate(inst, new_status)

    old_status = inst.status
    _conditional_write(inst, {ChecklistItemInstance.status: new_status}, new_status)
    logger.info("ChecklistItemInstance status id=%s %s → %s by=%s", inst.id, old_status, new_status, actor)

    if old_status != new_status:
        _record_audit(inst.id, old_status, new_status, actor)
    return get_instance(inst.id)


# ── Patch ────────────────────────────────────────────────────────────────────


def apply_type_rules(
    item_type: str,
    metadata: dict,
    *,
    completing: bool,
    metadata_in_patch: bool,
    actor: str,
) -> dict:
    """
    Validate and stamp type-specific metadata; returns the metadata to store.

    approval:  ``approver`` required; ``approvalDate`` stamped on completion
    document:  ``documentUrl`` required to complete
    task:      ``completedBy`` / ``completedDate`` stamped on completion
    """
    metadata = dict(metadata or {})
    now = isoformat(utcnow())

    if item_type == "approval":
        if (metadata_in_patch or completing) and not metadata.get("approver"):
            raise ValidationError(
                "Approver is required for approval items",
                details={"metadata.approver": "required"},
            )
        if completing and not metadata.get("approvalDate"):
            metadata["approvalDate"] = now
    elif item_type == "document":
        if completing and not metadata.get("documentUrl"):
            raise ValidationError(
                "Document URL is required for document items",
                details={"metadata.documentUrl": "required"},
            )
    elif item_type == "task":
        if completing:
            if not metadata.get("completedBy"):
                metadata["completedBy"] = actor
            if not metadata.get("completedDate"):
                metadata["completedDate"] = now
    return metadata


def update_instance(instance_id: str, data: dict, actor: str | None = None) -> ChecklistItemInstance:
    """
    Patch a checklist item instance.

    ``dependencies_requires`` can never be written here. Accepted fields are
    name, description, status, metadata (merged onto the stored map) and
    order. A status change goes through the same gate and conditional write
    as ``update_status``.
    """
    if "dependencies_requires" in data:
        raise ValidationError(DEPENDENCIES_MANAGED_MSG, details={"dependencies_requires": "forbidden"})

    unknown = sorted(k for k in data if k not in _UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(
            f"Unknown or read-only fields: {', '.join(unknown)}",
            details={k: "not_allowed" for k in unknown},
        )

    inst = get_instance(instance_id)
    actor = actor or current_actor()
    old_status = inst.status

    new_status = None
    if "status" in data:
        new_status = _validate_status(data["status"])
        if new_status != old_status:
            _check_gate(inst, new_status)

    values = {}
    if "name" in data:
        values[ChecklistItemInstance.name] = require_text(data, "name", partial=True)
    if "description" in data:
        values[ChecklistItemInstance.description] = data["description"]
    if "order" in data:
        order = data["order"]
        if isinstance(order, bool) or not isinstance(order, int) or order < 0:
            raise ValidationError("order must be a non-negative integer", details={"order": "invalid"})
        values[ChecklistItemInstance.order] = order

    patch_metadata = data.get("metadata")
    if "metadata" in data and not isinstance(patch_metadata, dict):
        raise ValidationError("metadata must be an object", details={"metadata": "invalid"})

    completing = new_status == "complete" and old_status != "complete"
    if "metadata" in data or completing:
        merged = {**(inst.metadata_json or {}), **(patch_metadata or {})}
        values[ChecklistItemInstance.metadata_json] = apply_type_rules(
            inst.type, merged,
            completing=completing,
            metadata_in_patch="metadata" in data,
            actor=actor,
        )
    if new_status is not None:
        values[ChecklistItemInstance.status] = new_status

    if not values:
        return inst

    _conditional_write(inst, values, new_status if new_status != old_status else None)
    logger.info("ChecklistItemInstance updated id=%s fields=%s", inst.id, sorted(data))

    if new_status is not None and new_status != old_status:
        _record_audit(inst.id, old_status, new_status, actor)
    return get_instance(inst.id)
