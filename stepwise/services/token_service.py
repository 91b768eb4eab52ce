"""
Token Service — actor identity tokens issued by the identity provider.

The content services never log anyone in; they only need to turn an
incoming bearer token into an actor id. ``generate_access_token`` exists for
tests and for local tooling that impersonates an actor.

Algorithm: HS256, secret JWT_SECRET_KEY (falls back to SECRET_KEY).

Payload:
{
    "sub": <profile id>,
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>
}
"""

from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

DEFAULT_ACCESS_EXPIRES = 3600
ALGORITHM = "HS256"


def _get_secret():
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def generate_access_token(actor_id: str, expires_in: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    seconds = expires_in if expires_in is not None else current_app.config.get(
        "JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES
    )
    payload = {
        "sub": actor_id,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=seconds),
    }
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Decode and verify an access token.

    Raises jwt.InvalidTokenError (or a subclass such as
    ExpiredSignatureError) on any failure.
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])
    if payload.get("type") != "access":
        raise jwt.InvalidTokenError(f"Expected access token, got {payload.get('type')}")
    return payload
