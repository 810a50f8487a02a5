"""
tests/test_template_service.py — Template dependency maintenance and ordering.

Covers:
    1.  Self-dependency silently dropped on update
    2.  Duplicate dependency ids collapsed
    3.  Cross-workflow dependency inside one governance template accepted
    4.  Cross-governance dependency rejected (400)
    5.  Cycle-closing dependency rejected (409)
    6.  Delete pulls the id from every other template
    7.  Order density after creates, deletes and moves
    8.  Move out of range rejected before anything shifts
    9.  Workflow template delete cascades item templates and their edges
    10. Governance template delete cascades everything; duplicate name+version conflicts
    11. Required fields checked in the service: missing or null is 400, never 409 or 500
"""

import pytest

import app.services.template_service as ts
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.governance import ChecklistItemTemplate, WorkflowTemplate


# ═════════════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════════════


def _workflow(governance, name="Design"):
    return ts.create_workflow_template({"governance_template_id": governance.id, "name": name})


def _item(workflow, name, type_="task", deps=None):
    data = {"workflow_template_id": workflow.id, "name": name, "type": type_}
    if deps is not None:
        data["dependencies_requires"] = deps
    return ts.create_checklist_item_template(data)


def _orders(workflow_id):
    rows = (
        ChecklistItemTemplate.query
        .filter_by(workflow_template_id=workflow_id)
        .order_by(ChecklistItemTemplate.order)
        .all()
    )
    return [(r.name, r.order) for r in rows]


def _deps(template_id):
    db.session.expire_all()
    return db.session.get(ChecklistItemTemplate, template_id).dependencies_requires


# ═════════════════════════════════════════════════════════════════════════════
# Dependency maintenance
# ═════════════════════════════════════════════════════════════════════════════


class TestDependencyMaintenance:
    def test_self_dependency_dropped(self, governance):
        wf = _workflow(governance)
        a = _item(wf, "A")
        b = _item(wf, "B")

        ts.update_checklist_item_template(a.id, {"dependencies_requires": [a.id, b.id]})

        assert _deps(a.id) == [b.id]

    def test_only_self_dependency_becomes_empty(self, governance):
        wf = _workflow(governance)
        a = _item(wf, "A")
        ts.update_checklist_item_template(a.id, {"dependencies_requires": [a.id]})
        assert _deps(a.id) == []

    def test_duplicates_collapsed_in_order(self, governance):
        wf = _workflow(governance)
        a, b, c = _item(wf, "A"), _item(wf, "B"), _item(wf, "C")
        ts.update_checklist_item_template(c.id, {"dependencies_requires": [b.id, a.id, b.id]})
        assert _deps(c.id) == [b.id, a.id]

    def test_uppercase_ids_normalised(self, governance):
        wf = _workflow(governance)
        a, b = _item(wf, "A"), _item(wf, "B")
        ts.update_checklist_item_template(b.id, {"dependencies_requires": [a.id.upper()]})
        assert _deps(b.id) == [a.id]

    def test_create_with_dependencies(self, governance):
        wf = _workflow(governance)
        a = _item(wf, "A")
        b = _item(wf, "B", deps=[a.id])
        assert b.dependencies_requires == [a.id]

    def test_cross_workflow_same_governance_allowed(self, governance):
        wf1 = _workflow(governance, "Design")
        wf2 = _workflow(governance, "Deploy")
        a = _item(wf1, "Design review")
        b = _item(wf2, "Go live")

        ts.update_checklist_item_template(b.id, {"dependencies_requires": [a.id]})

        assert _deps(b.id) == [a.id]

    def test_cross_governance_rejected(self, governance):
        other = ts.create_governance_template({"name": "Other", "version": "1.0"})
        foreign = _item(_workflow(other), "Foreign")
        local = _item(_workflow(governance), "Local")

        with pytest.raises(ValidationError) as exc:
            ts.update_checklist_item_template(local.id, {"dependencies_requires": [foreign.id]})

        assert exc.value.details["unknown"] == [foreign.id]
        assert _deps(local.id) == []

    def test_unknown_dependency_rejected(self, governance):
        local = _item(_workflow(governance), "Local")
        with pytest.raises(ValidationError):
            ts.update_checklist_item_template(local.id, {"dependencies_requires": ["f" * 24]})

    def test_malformed_dependency_rejected(self, governance):
        local = _item(_workflow(governance), "Local")
        with pytest.raises(ValidationError):
            ts.update_checklist_item_template(local.id, {"dependencies_requires": ["nope"]})

    def test_cycle_rejected(self, governance):
        wf = _workflow(governance)
        a = _item(wf, "A")
        b = _item(wf, "B", deps=[a.id])
        c = _item(wf, "C", deps=[b.id])

        with pytest.raises(ConflictError):
            ts.update_checklist_item_template(a.id, {"dependencies_requires": [c.id]})

        assert _deps(a.id) == []

    def test_delete_pulls_id_from_dependents(self, governance):
        wf = _workflow(governance)
        c = _item(wf, "C")
        a = _item(wf, "A", deps=[c.id])
        b = _item(wf, "B", deps=[c.id])
        c_id = c.id

        ts.delete_checklist_item_template(c_id)

        assert _deps(a.id) == []
        assert _deps(b.id) == []
        assert db.session.get(ChecklistItemTemplate, c_id) is None

    def test_delete_pulls_id_across_workflows(self, governance):
        wf1 = _workflow(governance, "One")
        wf2 = _workflow(governance, "Two")
        target = _item(wf1, "Target")
        keep = _item(wf1, "Keep")
        dependent = _item(wf2, "Dependent", deps=[target.id, keep.id])

        ts.delete_checklist_item_template(target.id)

        assert _deps(dependent.id) == [keep.id]

    def test_delete_missing_raises_not_found(self):
        with pytest.raises(NotFoundError):
            ts.delete_checklist_item_template("a" * 24)

    def test_invalid_type_rejected(self, governance):
        wf = _workflow(governance)
        with pytest.raises(ValidationError):
            _item(wf, "Bad", type_="meeting")


# ═════════════════════════════════════════════════════════════════════════════
# Order density
# ═════════════════════════════════════════════════════════════════════════════


class TestOrdering:
    def test_create_appends(self, governance):
        wf = _workflow(governance)
        for name in ("A", "B", "C"):
            _item(wf, name)
        assert _orders(wf.id) == [("A", 0), ("B", 1), ("C", 2)]

    def test_delete_closes_gap(self, governance):
        wf = _workflow(governance)
        _item(wf, "A")
        b = _item(wf, "B")
        _item(wf, "C")
        _item(wf, "D")

        ts.delete_checklist_item_template(b.id)

        assert _orders(wf.id) == [("A", 0), ("C", 1), ("D", 2)]

    def test_move_down(self, governance):
        wf = _workflow(governance)
        a = _item(wf, "A")
        for name in ("B", "C", "D"):
            _item(wf, name)

        ts.update_checklist_item_template(a.id, {"order": 2})

        assert _orders(wf.id) == [("B", 0), ("C", 1), ("A", 2), ("D", 3)]

    def test_move_up(self, governance):
        wf = _workflow(governance)
        for name in ("A", "B", "C"):
            _item(wf, name)
        d = _item(wf, "D")

        ts.update_checklist_item_template(d.id, {"order": 0})

        assert _orders(wf.id) == [("D", 0), ("A", 1), ("B", 2), ("C", 3)]

    def test_move_out_of_range_rejected(self, governance):
        wf = _workflow(governance)
        a = _item(wf, "A")
        _item(wf, "B")

        for bad in (2, -1, "1", True):
            with pytest.raises(ValidationError):
                ts.update_checklist_item_template(a.id, {"order": bad})
            db.session.rollback()

        assert _orders(wf.id) == [("A", 0), ("B", 1)]

    def test_density_after_mixed_operations(self, governance):
        wf = _workflow(governance)
        items = [_item(wf, f"I{i}") for i in range(6)]
        ts.update_checklist_item_template(items[5].id, {"order": 1})
        ts.delete_checklist_item_template(items[2].id)
        _item(wf, "late")
        ts.update_checklist_item_template(items[0].id, {"order": 4})
        ts.delete_checklist_item_template(items[3].id)

        orders = [o for _, o in _orders(wf.id)]
        assert orders == list(range(len(orders)))
        assert len(orders) == 5

    def test_workflow_template_order(self, governance):
        one = _workflow(governance, "One")
        two = _workflow(governance, "Two")
        three = _workflow(governance, "Three")
        assert (one.order, two.order, three.order) == (0, 1, 2)

        ts.update_workflow_template(three.id, {"order": 0})
        ts.delete_workflow_template(one.id)

        names = [(w.name, w.order) for w in ts.list_workflow_templates(governance.id)]
        assert names == [("Three", 0), ("Two", 1)]


# ═════════════════════════════════════════════════════════════════════════════
# Cascades
# ═════════════════════════════════════════════════════════════════════════════


class TestCascades:
    def test_workflow_delete_removes_items_and_edges(self, governance):
        wf1 = _workflow(governance, "One")
        wf2 = _workflow(governance, "Two")
        gone = _item(wf1, "Gone")
        survivor = _item(wf2, "Survivor", deps=[gone.id])
        gone_id = gone.id

        ts.delete_workflow_template(wf1.id)

        assert db.session.get(ChecklistItemTemplate, gone_id) is None
        assert _deps(survivor.id) == []

    def test_governance_delete_cascades(self, governance):
        wf = _workflow(governance)
        _item(wf, "A")

        ts.delete_governance_template(governance.id)

        assert WorkflowTemplate.query.count() == 0
        assert ChecklistItemTemplate.query.count() == 0

    def test_duplicate_name_version_conflicts(self, governance):
        with pytest.raises(ConflictError):
            ts.create_governance_template({"name": "Model Governance", "version": "1.0"})

    def test_same_name_new_version_allowed(self, governance):
        tpl = ts.create_governance_template({"name": "Model Governance", "version": "2.0"})
        assert tpl.id != governance.id


# ═════════════════════════════════════════════════════════════════════════════
# Required fields
# ═════════════════════════════════════════════════════════════════════════════


class TestRequiredFields:
    def test_create_governance_missing_version(self):
        with pytest.raises(ValidationError) as exc:
            ts.create_governance_template({"name": "No version"})
        assert exc.value.details == {"version": "required"}

    def test_create_workflow_missing_fields(self, governance):
        with pytest.raises(ValidationError) as exc:
            ts.create_workflow_template({"governance_template_id": governance.id})
        assert exc.value.details == {"name": "required"}

        with pytest.raises(ValidationError) as exc:
            ts.create_workflow_template({"name": "Orphan"})
        assert exc.value.details == {"governance_template_id": "required"}

    def test_create_item_missing_workflow(self):
        with pytest.raises(ValidationError) as exc:
            ts.create_checklist_item_template({"name": "Orphan", "type": "task"})
        assert exc.value.details == {"workflow_template_id": "required"}

    @pytest.mark.parametrize("field", ["name", "version"])
    def test_update_governance_null_field(self, governance, field):
        with pytest.raises(ValidationError):
            ts.update_governance_template(governance.id, {field: None})
        db.session.expire_all()
        assert ts.get_governance_template(governance.id).name == "Model Governance"

    def test_update_workflow_null_name(self, governance):
        wf = _workflow(governance)
        with pytest.raises(ValidationError) as exc:
            ts.update_workflow_template(wf.id, {"name": None})
        assert exc.value.details == {"name": "required"}
        db.session.expire_all()
        assert ts.get_workflow_template(wf.id).name == "Design"

    def test_update_item_blank_name(self, governance):
        item = _item(_workflow(governance), "A")
        with pytest.raises(ValidationError):
            ts.update_checklist_item_template(item.id, {"name": "   "})
        db.session.expire_all()
        assert ts.get_checklist_item_template(item.id).name == "A"

    def test_names_stripped(self, governance):
        wf = ts.create_workflow_template({"governance_template_id": governance.id, "name": "  Padded  "})
        assert wf.name == "Padded"
