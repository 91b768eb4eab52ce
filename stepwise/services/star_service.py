"""Star toggle — one row per (actor, project); counter follows, best effort."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from stepwise.core.exceptions import InternalError, NotFoundError
from stepwise.models import db
from stepwise.models.project import Project, Star
from stepwise.services import counter_sync

logger = logging.getLogger(__name__)


def toggle_star(project_id: str, user_id: str) -> dict:
    """Star or unstar ``project_id`` for ``user_id``.

    Returns ``{"starred": bool, "count": int}``. The count is read back
    from the project row after the counter write; a failed counter write
    leaves it stale but never fails the toggle.

    Raises:
        NotFoundError: project does not exist.
    """
    if db.session.get(Project, project_id) is None:
        raise NotFoundError("Project", project_id)

    existing = db.session.execute(
        select(Star).where(Star.project_id == project_id, Star.user_id == user_id)
    ).scalar_one_or_none()

    if existing is not None:
        db.session.delete(existing)
        starred = False
    else:
        db.session.add(Star(project_id=project_id, user_id=user_id))
        starred = True

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise InternalError("Failed to toggle star", code="StarToggleFailed") from exc

    if starred:
        counter_sync.increment_stars(project_id)
    else:
        counter_sync.decrement_stars(project_id)

    count = db.session.execute(
        select(Project.star_count).where(Project.id == project_id)
    ).scalar() or 0
    logger.info("Star toggled project_id=%s starred=%s count=%d", project_id, starred, count)
    return {"starred": starred, "count": count}


def is_starred(project_id: str, user_id: str | None) -> bool:
    if user_id is None:
        return False
    return db.session.execute(
        select(Star.id).where(Star.project_id == project_id, Star.user_id == user_id)
    ).first() is not None
