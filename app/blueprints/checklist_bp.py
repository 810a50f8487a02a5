"""
Checklist Item Instance Blueprint.

Endpoints:
  GET  /checklist-item-instances?workflow_instance_id=   dependency-ordered list
  GET  /checklist-item-instances/<id>
  PUT  /checklist-item-instances/<id>                    patch (dependencies are read-only)
  PUT  /checklist-item-instances/<id>/status             status gate
  GET  /checklist-item-instances/<id>/audit              status change history

Completing an item whose dependencies are not complete answers 412 with the
blocking dependency ids in ``details.blocking``.
"""

import logging

from flask import Blueprint, jsonify, request

import app.services.checklist_service as cs
from app.blueprints import json_body, list_response, require_fields
from app.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

checklist_bp = Blueprint("checklist", __name__, url_prefix="/api/v1/checklist-item-instances")
register_error_handlers(checklist_bp)


@checklist_bp.route("", methods=["GET"])
def list_checklist_item_instances():
    workflow_instance_id = request.args.get("workflow_instance_id")
    require_fields({"workflow_instance_id": workflow_instance_id}, "workflow_instance_id")
    return list_response(cs.list_for_workflow(workflow_instance_id))


@checklist_bp.route("/<instance_id>", methods=["GET"])
def get_checklist_item_instance(instance_id):
    return jsonify(cs.get_instance(instance_id).to_dict())


@checklist_bp.route("/<instance_id>", methods=["PUT"])
def update_checklist_item_instance(instance_id):
    inst = cs.update_instance(instance_id, json_body())
    return jsonify(inst.to_dict())


@checklist_bp.route("/<instance_id>/status", methods=["PUT"])
def update_checklist_item_instance_status(instance_id):
    data = json_body()
    require_fields(data, "status")
    inst = cs.update_status(instance_id, data["status"])
    return jsonify(inst.to_dict())


@checklist_bp.route("/<instance_id>/audit", methods=["GET"])
def checklist_item_instance_audit(instance_id):
    return list_response(cs.list_audit(instance_id))
