"""
Project Blueprint.

Endpoints:
  Project:           GET/POST /projects, GET/PUT/DELETE /projects/<id>
                     GET /projects/<id>/checklist   (grouped checklist view)
  WorkflowInstance:  GET /workflow-instances?project_id=
                     GET/PUT /workflow-instances/<id>

POST /projects projects the selected workflow templates into instances.
"""

import logging

from flask import Blueprint, jsonify, request

import app.services.checklist_service as cs
import app.services.project_service as ps
from app.blueprints import json_body, list_response, require_fields
from app.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

project_bp = Blueprint("projects", __name__, url_prefix="/api/v1")
register_error_handlers(project_bp)


# ═════════════════════════════════════════════════════════════════════════════
# Project
# ═════════════════════════════════════════════════════════════════════════════


@project_bp.route("/projects", methods=["GET"])
def list_projects():
    return list_response(ps.list_projects())


@project_bp.route("/projects", methods=["POST"])
def create_project():
    """Create a project from a governance template and a workflow selection."""
    data = json_body()
    require_fields(data, "name", "governance_template_id", "selected_workflow_template_ids")
    project = ps.create_project(data)
    return jsonify(project.to_dict(include_children=True)), 201


@project_bp.route("/projects/<project_id>", methods=["GET"])
def get_project(project_id):
    project = ps.get_project(project_id)
    return jsonify(project.to_dict(include_children=True))


@project_bp.route("/projects/<project_id>", methods=["PUT"])
def update_project(project_id):
    project = ps.update_project(project_id, json_body())
    return jsonify(project.to_dict())


@project_bp.route("/projects/<project_id>", methods=["DELETE"])
def delete_project(project_id):
    ps.delete_project(project_id)
    return "", 204


@project_bp.route("/projects/<project_id>/checklist", methods=["GET"])
def project_checklist(project_id):
    """All checklist items of the project, grouped by workflow then done/available/blocked."""
    return list_response(cs.list_for_project(project_id))


# ═════════════════════════════════════════════════════════════════════════════
# WorkflowInstance
# ═════════════════════════════════════════════════════════════════════════════


@project_bp.route("/workflow-instances", methods=["GET"])
def list_workflow_instances():
    project_id = request.args.get("project_id")
    require_fields({"project_id": project_id}, "project_id")
    return list_response(ps.list_workflow_instances(project_id))


@project_bp.route("/workflow-instances/<instance_id>", methods=["GET"])
def get_workflow_instance(instance_id):
    return jsonify(ps.get_workflow_instance(instance_id).to_dict())


@project_bp.route("/workflow-instances/<instance_id>", methods=["PUT"])
def update_workflow_instance(instance_id):
    wi = ps.update_workflow_instance(instance_id, json_body())
    return jsonify(wi.to_dict())
