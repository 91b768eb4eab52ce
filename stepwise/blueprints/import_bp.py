"""
Import blueprint — session export instructions and pasted-output parsing.

Endpoints:
    GET  /api/v1/export-prompts          every tool's export instruction
    GET  /api/v1/export-prompts/<tool>   one tool
    POST /api/v1/imports/parse           validate pasted AI output

Parsing is stateless; nothing is written. A failed parse answers 400 with
the failure ``kind`` and, for schema violations, the offending ``path``.
"""

import logging

from flask import Blueprint, jsonify, request

from stepwise.blueprints import register_error_handlers
from stepwise.services import export_prompts
from stepwise.services.ingestion import parse_export
from stepwise.utils.errors import E, api_error

logger = logging.getLogger(__name__)

import_bp = Blueprint("import_bp", __name__, url_prefix="/api/v1")
register_error_handlers(import_bp)


@import_bp.route("/export-prompts", methods=["GET"])
def list_export_prompts():
    return jsonify({"tools": export_prompts.list_export_tools()}), 200


@import_bp.route("/export-prompts/<tool>", methods=["GET"])
def get_export_prompt(tool):
    return jsonify(export_prompts.get_export_tool(tool).to_dict()), 200


@import_bp.route("/imports/parse", methods=["POST"])
def parse_import():
    data = request.get_json(silent=True)
    raw = data.get("raw") if isinstance(data, dict) else None
    if raw is not None and not isinstance(raw, str):
        return api_error(E.VALIDATION_INVALID, "raw must be a string")

    result = parse_export(raw)
    if not result.ok:
        logger.info("Import parse rejected kind=%s path=%s", result.error.kind.value, result.error.path)
        details = {"kind": result.error.kind.value}
        if result.error.path is not None:
            details["path"] = result.error.path
        return api_error(E.INGESTION, result.error.message, details=details)

    return jsonify({"steps": [s.to_dict() for s in result.steps]}), 200
