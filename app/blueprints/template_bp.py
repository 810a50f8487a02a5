"""
Template Blueprint.

Endpoints:
  GovernanceTemplate:     GET/POST /governance-templates
                          GET/PUT/DELETE /governance-templates/<id>
  WorkflowTemplate:       GET/POST /workflow-templates  (?governance_template_id=)
                          GET/PUT/DELETE /workflow-templates/<id>
  ChecklistItemTemplate:  GET/POST /checklist-item-templates  (?workflow_template_id=)
                          GET/PUT/DELETE /checklist-item-templates/<id>

Service layer owns all business logic and commits.
"""

import logging

from flask import Blueprint, jsonify, request

import app.services.template_service as ts
from app.blueprints import json_body, list_response, require_fields
from app.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

template_bp = Blueprint("templates", __name__, url_prefix="/api/v1")
register_error_handlers(template_bp)


# ═════════════════════════════════════════════════════════════════════════════
# GovernanceTemplate
# ═════════════════════════════════════════════════════════════════════════════


@template_bp.route("/governance-templates", methods=["GET"])
def list_governance_templates():
    """List governance templates with their workflow templates in order."""
    items = ts.list_governance_templates()
    return list_response([t.to_dict(include_children=True) for t in items])


@template_bp.route("/governance-templates", methods=["POST"])
def create_governance_template():
    data = json_body()
    require_fields(data, "name", "version")
    tpl = ts.create_governance_template(data)
    return jsonify(tpl.to_dict(include_children=True)), 201


@template_bp.route("/governance-templates/<template_id>", methods=["GET"])
def get_governance_template(template_id):
    tpl = ts.get_governance_template(template_id)
    return jsonify(tpl.to_dict(include_children=True))


@template_bp.route("/governance-templates/<template_id>", methods=["PUT"])
def update_governance_template(template_id):
    tpl = ts.update_governance_template(template_id, json_body())
    return jsonify(tpl.to_dict(include_children=True))


@template_bp.route("/governance-templates/<template_id>", methods=["DELETE"])
def delete_governance_template(template_id):
    """Delete a governance template and everything under it."""
    ts.delete_governance_template(template_id)
    return "", 204


# ═════════════════════════════════════════════════════════════════════════════
# WorkflowTemplate
# ═════════════════════════════════════════════════════════════════════════════


@template_bp.route("/workflow-templates", methods=["GET"])
def list_workflow_templates():
    items = ts.list_workflow_templates(request.args.get("governance_template_id"))
    return list_response(items)


@template_bp.route("/workflow-templates", methods=["POST"])
def create_workflow_template():
    """Append a workflow template to a governance template."""
    data = json_body()
    require_fields(data, "governance_template_id", "name")
    wt = ts.create_workflow_template(data)
    return jsonify(wt.to_dict()), 201


@template_bp.route("/workflow-templates/<template_id>", methods=["GET"])
def get_workflow_template(template_id):
    return jsonify(ts.get_workflow_template(template_id).to_dict())


@template_bp.route("/workflow-templates/<template_id>", methods=["PUT"])
def update_workflow_template(template_id):
    wt = ts.update_workflow_template(template_id, json_body())
    return jsonify(wt.to_dict())


@template_bp.route("/workflow-templates/<template_id>", methods=["DELETE"])
def delete_workflow_template(template_id):
    ts.delete_workflow_template(template_id)
    return "", 204


# ═════════════════════════════════════════════════════════════════════════════
# ChecklistItemTemplate
# ═════════════════════════════════════════════════════════════════════════════


@template_bp.route("/checklist-item-templates", methods=["GET"])
def list_checklist_item_templates():
    items = ts.list_checklist_item_templates(request.args.get("workflow_template_id"))
    return list_response(items)


@template_bp.route("/checklist-item-templates", methods=["POST"])
def create_checklist_item_template():
    data = json_body()
    require_fields(data, "workflow_template_id", "name", "type")
    tpl = ts.create_checklist_item_template(data)
    return jsonify(tpl.to_dict()), 201


@template_bp.route("/checklist-item-templates/<template_id>", methods=["GET"])
def get_checklist_item_template(template_id):
    return jsonify(ts.get_checklist_item_template(template_id).to_dict())


@template_bp.route("/checklist-item-templates/<template_id>", methods=["PUT"])
def update_checklist_item_template(template_id):
    """Update fields, dependencies (self id dropped, cycles rejected) or order."""
    tpl = ts.update_checklist_item_template(template_id, json_body())
    return jsonify(tpl.to_dict())


@template_bp.route("/checklist-item-templates/<template_id>", methods=["DELETE"])
def delete_checklist_item_template(template_id):
    ts.delete_checklist_item_template(template_id)
    return "", 204
