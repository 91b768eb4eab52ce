"""Shared utility functions — slug derivation, suffixes, timestamps."""

import re
import secrets
import string
from datetime import datetime, timezone

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits

SLUG_MAX_LENGTH = 60
DEFAULT_SLUG = "project"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def slugify(title: str | None) -> str:
    """Derive a URL-safe slug from a title.

    Lowercases, collapses every run of non-alphanumerics into ``-``, trims
    leading/trailing dashes and caps the length. Titles with no usable
    characters fall back to ``"project"``.
    """
    base = _SLUG_STRIP.sub("-", (title or "").lower()).strip("-")
    base = base[:SLUG_MAX_LENGTH].rstrip("-")
    return base or DEFAULT_SLUG


def random_suffix(length: int = 4) -> str:
    """Short base-36 suffix used to disambiguate colliding slugs."""
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))

