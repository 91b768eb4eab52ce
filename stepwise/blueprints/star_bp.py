"""Star blueprint — POST /api/v1/stars toggles the actor's star on a project."""

from flask import Blueprint, jsonify

from stepwise.blueprints import json_body, register_error_handlers, require_actor
from stepwise.services import star_service
from stepwise.utils.errors import E, api_error

star_bp = Blueprint("star_bp", __name__, url_prefix="/api/v1")
register_error_handlers(star_bp)


@star_bp.route("/stars", methods=["POST"])
def toggle_star():
    actor_id = require_actor()
    project_id = json_body().get("projectId")
    if not project_id:
        return api_error(E.VALIDATION_REQUIRED, "projectId is required")
    return jsonify(star_service.toggle_star(project_id, actor_id)), 200
