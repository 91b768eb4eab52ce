"""Unique project slugs — title-derived for new projects, suffixed for forks."""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import select

from stepwise.core.exceptions import ConflictError
from stepwise.models import db
from stepwise.models.project import Project
from stepwise.utils.helpers import random_suffix, slugify

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 10

# Matches Project.slug column length.
SLUG_COLUMN_LENGTH = 80
_SUFFIX_LENGTH = 4


def _max_attempts() -> int:
    return int(current_app.config.get("SLUG_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS))


def slug_exists(slug: str) -> bool:
    return db.session.execute(
        select(Project.id).where(Project.slug == slug)
    ).first() is not None


def _exhausted(base: str, attempts: int) -> ConflictError:
    logger.warning("Slug space exhausted base=%s attempts=%d", base, attempts)
    return ConflictError(
        "Project",
        "slug",
        base,
        code="SlugExhausted",
        message="Could not generate a unique slug. Try a different title.",
    )


def unique_slug_for_title(title: str) -> str:
    """Title slug as-is when free, otherwise ``<base>-<suffix>``.

    Raises:
        ConflictError (SlugExhausted): every attempt collided.
    """
    base = slugify(title)
    candidate = base
    attempts = _max_attempts()
    for _ in range(attempts):
        if not slug_exists(candidate):
            return candidate
        candidate = f"{base}-{random_suffix()}"
    raise _exhausted(base, attempts)


def unique_fork_slug(source_slug: str) -> str:
    """Source slug plus a fresh random suffix per attempt.

    The source slug is cut so the result fits the slug column, however long
    the fork chain gets.

    Raises:
        ConflictError (SlugExhausted): every attempt collided.
    """
    base = source_slug[: SLUG_COLUMN_LENGTH - _SUFFIX_LENGTH - 1].rstrip("-") or "project"
    attempts = _max_attempts()
    for _ in range(attempts):
        candidate = f"{base}-{random_suffix(_SUFFIX_LENGTH)}"
        if not slug_exists(candidate):
            return candidate
    raise _exhausted(base, attempts)
