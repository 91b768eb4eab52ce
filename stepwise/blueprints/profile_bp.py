"""
Profile blueprint — an author's public page data.

Endpoints:
    GET /api/v1/users/<username>            profile + stats
    GET /api/v1/users/<username>/projects   authored projects (drafts: owner only)
    GET /api/v1/users/<username>/forks      public forks with source info
    GET /api/v1/users/<username>/stars      starred projects
    GET /api/v1/users/<username>/stats      totals over public projects
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from stepwise.blueprints import current_actor, register_error_handlers
from stepwise.services import profile_service

profile_bp = Blueprint("profile_bp", __name__, url_prefix="/api/v1/users")
register_error_handlers(profile_bp)


@profile_bp.route("/<username>", methods=["GET"])
def get_profile(username):
    profile = profile_service.get_profile(username)
    return jsonify({
        "profile": profile.to_dict(),
        "stats": profile_service.get_user_stats(username),
    }), 200


@profile_bp.route("/<username>/projects", methods=["GET"])
def list_projects(username):
    projects = profile_service.list_author_projects(username, current_actor())
    return jsonify({"projects": projects}), 200


@profile_bp.route("/<username>/forks", methods=["GET"])
def list_forks(username):
    return jsonify({"projects": profile_service.list_forked_projects(username)}), 200


@profile_bp.route("/<username>/stars", methods=["GET"])
def list_stars(username):
    projects = profile_service.list_starred_projects(username, current_actor())
    return jsonify({"projects": projects}), 200


@profile_bp.route("/<username>/stats", methods=["GET"])
def stats(username):
    return jsonify(profile_service.get_user_stats(username)), 200
