"""
Comment blueprint — threaded discussion per project.

Endpoints:
    GET    /api/v1/projects/<id>/comments   tree (pinned first)
    POST   /api/v1/comments                 add comment or reply
    DELETE /api/v1/comments/<id>            delete own comment
    POST   /api/v1/comments/pin             pin / unpin (project owner)
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from stepwise.blueprints import json_body, register_error_handlers, require_actor
from stepwise.services import comment_service
from stepwise.utils.errors import E, api_error

comment_bp = Blueprint("comment_bp", __name__, url_prefix="/api/v1")
register_error_handlers(comment_bp)


@comment_bp.route("/projects/<project_id>/comments", methods=["GET"])
def list_comments(project_id):
    return jsonify({"comments": comment_service.get_comment_tree(project_id)}), 200


@comment_bp.route("/comments", methods=["POST"])
def add_comment():
    actor_id = require_actor()
    data = json_body()
    project_id = data.get("projectId")
    if not project_id:
        return api_error(E.VALIDATION_REQUIRED, "projectId is required")

    comment = comment_service.add_comment(
        project_id,
        actor_id,
        data.get("body"),
        parent_comment_id=data.get("parentCommentId") or None,
    )
    return jsonify(comment.to_dict()), 201


@comment_bp.route("/comments/<comment_id>", methods=["DELETE"])
def delete_comment(comment_id):
    actor_id = require_actor()
    comment_service.delete_comment(comment_id, actor_id)
    return jsonify({"success": True}), 200


@comment_bp.route("/comments/pin", methods=["POST"])
def pin_comment():
    actor_id = require_actor()
    data = json_body()
    missing = [k for k in ("commentId", "projectId") if not data.get(k)]
    if missing:
        return api_error(
            E.VALIDATION_REQUIRED,
            f"{', '.join(missing)} required",
            details={"missing": missing},
        )

    comment = comment_service.set_pin(
        data["commentId"], data["projectId"], actor_id, data.get("action") or comment_service.PIN
    )
    return jsonify({"success": True, "is_pinned": comment.is_pinned}), 200
