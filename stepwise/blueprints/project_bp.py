"""
Project blueprint — create, edit, delete, fork, append and read projects.

Endpoints:
    POST   /api/v1/projects                          create
    PUT    /api/v1/projects/<id>                     update (owner)
    DELETE /api/v1/projects/<id>                     delete (owner)
    GET    /api/v1/projects/mine                     actor's projects
    POST   /api/v1/projects/<id>/append-steps        append imported steps (owner)
    POST   /api/v1/projects/fork                     fork a public project
    GET    /api/v1/users/<username>/projects/<slug>  detail (drafts: owner only)

Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify

from stepwise.blueprints import current_actor, json_body, register_error_handlers, require_actor
from stepwise.services import fork_engine, project_service
from stepwise.utils.errors import E, api_error

logger = logging.getLogger(__name__)

project_bp = Blueprint("project_bp", __name__, url_prefix="/api/v1")
register_error_handlers(project_bp)


@project_bp.route("/projects", methods=["POST"])
def create_project():
    actor_id = require_actor()
    result = project_service.create_project(actor_id, json_body())
    return jsonify(result), 201


@project_bp.route("/projects/<project_id>", methods=["PUT"])
def update_project(project_id):
    actor_id = require_actor()
    return jsonify(project_service.update_project(project_id, actor_id, json_body())), 200


@project_bp.route("/projects/<project_id>", methods=["DELETE"])
def delete_project(project_id):
    actor_id = require_actor()
    project_service.delete_project(project_id, actor_id)
    return jsonify({"success": True}), 200


@project_bp.route("/projects/mine", methods=["GET"])
def my_projects():
    actor_id = require_actor()
    return jsonify({"projects": project_service.list_my_projects(actor_id)}), 200


@project_bp.route("/projects/<project_id>/append-steps", methods=["POST"])
def append_steps(project_id):
    actor_id = require_actor()
    data = json_body()
    if "steps" not in data:
        return api_error(E.VALIDATION_REQUIRED, "steps is required")
    result = project_service.append_steps_to_project(project_id, actor_id, data["steps"])
    return jsonify(result), 200


@project_bp.route("/projects/fork", methods=["POST"])
def fork_project():
    actor_id = require_actor()
    source_id = json_body().get("projectId")
    if not source_id or not isinstance(source_id, str):
        return api_error(E.VALIDATION_REQUIRED, "projectId is required")

    result = fork_engine.fork_project(source_id, actor_id)
    return jsonify(result.to_dict()), 201


@project_bp.route("/users/<username>/projects/<slug>", methods=["GET"])
def project_detail(username, slug):
    return jsonify(project_service.get_project_detail(username, slug, current_actor())), 200
