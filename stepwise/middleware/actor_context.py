"""
Actor Context Middleware — resolves the acting profile id into ``g.actor_id``.

Sources, first match wins:
  1. Authorization: Bearer <jwt>   ``sub`` claim
  2. X-Actor-Id: <profile id>      only when ACTOR_HEADER_ENABLED (dev/test)

An invalid or expired token leaves ``g.actor_id`` unset; endpoints that need
an actor answer 401 through ``require_actor``.
"""

import logging

import jwt as pyjwt
from flask import g, request

from stepwise.services.token_service import decode_access_token

logger = logging.getLogger(__name__)

ACTOR_HEADER = "X-Actor-Id"


def init_actor_context(app):
    """Register the actor resolution before_request hook."""

    @app.before_request
    def _resolve_actor():
        g.actor_id = None

        if not request.path.startswith("/api/v1/"):
            return

        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            try:
                payload = decode_access_token(auth_header[7:])
                g.actor_id = payload.get("sub") or None
            except pyjwt.ExpiredSignatureError:
                logger.debug("Expired bearer token on %s", request.path)
            except pyjwt.InvalidTokenError:
                logger.debug("Invalid bearer token on %s", request.path)
            return

        if app.config.get("ACTOR_HEADER_ENABLED"):
            g.actor_id = request.headers.get(ACTOR_HEADER) or None
