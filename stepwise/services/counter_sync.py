"""
Counter Synchronizer — keeps Project.star_count / fork_count / comment_count
in line with the child rows they cache.

Two mechanisms:

Incremental (stars, comment add, fork completion)
    ``adjust_counter(project_id, field, +1 / -1)``. Floor of 0 on decrement.
    COUNTER_SYNC_MODE selects how the write is issued:
      "atomic"      one UPDATE ... SET n = CASE WHEN n + d < 0 THEN 0 ELSE n + d END
      "read_write"  SELECT n, compute, UPDATE n. Two concurrent togglers can
                    read the same base and lose one update. Accepted drift,
                    healed by recount.

Authoritative recount (comment delete, CLI heal)
    ``recount_*(project_id)`` counts the child rows and overwrites the
    counter unconditionally; correct regardless of cascade behaviour.

These writes run with elevated privilege: no ownership check, any actor's
action may move any project's counters.

Failures are NEVER fatal to the caller. Every public function logs, rolls
the session back and returns None so the primary row change (star insert,
comment delete, fork) is still reported as successful.
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import case, func, select, update
from sqlalchemy.exc import SQLAlchemyError

from stepwise.models import db
from stepwise.models.comment import Comment
from stepwise.models.project import COUNTER_FIELDS, Project, Star

logger = logging.getLogger(__name__)

MODE_ATOMIC = "atomic"
MODE_READ_WRITE = "read_write"
DEFAULT_MODE = MODE_ATOMIC


def _sync_mode() -> str:
    mode = current_app.config.get("COUNTER_SYNC_MODE", DEFAULT_MODE)
    return mode if mode in (MODE_ATOMIC, MODE_READ_WRITE) else DEFAULT_MODE


# ── Incremental mode ─────────────────────────────────────────────────────────


def adjust_counter(project_id: str, field: str, delta: int) -> int | None:
    """Add ``delta`` to a project counter, clamped at 0.

    Returns the new value, or None when the write failed (already logged).
    """
    if field not in COUNTER_FIELDS:
        raise ValueError(f"Unknown counter field: {field}")

    try:
        if _sync_mode() == MODE_READ_WRITE:
            new_value = _adjust_read_write(project_id, field, delta)
        else:
            new_value = _adjust_atomic(project_id, field, delta)
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.warning(
            "Counter sync failed project_id=%s field=%s delta=%+d: %s",
            project_id, field, delta, exc,
        )
        return None

    logger.debug("Counter %s project_id=%s -> %s", field, project_id, new_value)
    return new_value


def _adjust_atomic(project_id: str, field: str, delta: int) -> int | None:
    column = getattr(Project, field)
    db.session.execute(
        update(Project)
        .where(Project.id == project_id)
        .values({field: case((column + delta < 0, 0), else_=column + delta)})
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return db.session.execute(select(column).where(Project.id == project_id)).scalar()


def _adjust_read_write(project_id: str, field: str, delta: int) -> int | None:
    column = getattr(Project, field)
    current = db.session.execute(select(column).where(Project.id == project_id)).scalar()
    if current is None:
        return None
    new_value = max((current or 0) + delta, 0)
    db.session.execute(
        update(Project)
        .where(Project.id == project_id)
        .values({field: new_value})
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return new_value


def increment_stars(project_id: str) -> int | None:
    return adjust_counter(project_id, "star_count", 1)


def decrement_stars(project_id: str) -> int | None:
    return adjust_counter(project_id, "star_count", -1)


def increment_comments(project_id: str) -> int | None:
    return adjust_counter(project_id, "comment_count", 1)


def increment_forks(project_id: str) -> int | None:
    """Called exactly once, after a fork has fully succeeded."""
    return adjust_counter(project_id, "fork_count", 1)


# ── Authoritative recount ────────────────────────────────────────────────────


def _count_query(field: str, project_id: str):
    if field == "comment_count":
        return select(func.count(Comment.id)).where(Comment.project_id == project_id)
    if field == "star_count":
        return select(func.count(Star.id)).where(Star.project_id == project_id)
    return select(func.count(Project.id)).where(Project.forked_from_id == project_id)


def recount(project_id: str, field: str) -> int | None:
    """Overwrite a counter with the true child-row count. None on failure."""
    if field not in COUNTER_FIELDS:
        raise ValueError(f"Unknown counter field: {field}")

    try:
        actual = db.session.execute(_count_query(field, project_id)).scalar() or 0
        db.session.execute(
            update(Project)
            .where(Project.id == project_id)
            .values({field: actual})
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.warning("Recount failed project_id=%s field=%s: %s", project_id, field, exc)
        return None
    return actual


def recount_comments(project_id: str) -> int | None:
    return recount(project_id, "comment_count")


def recount_stars(project_id: str) -> int | None:
    return recount(project_id, "star_count")


def recount_forks(project_id: str) -> int | None:
    return recount(project_id, "fork_count")


def recount_all(project_id: str) -> dict:
    return {field: recount(project_id, field) for field in COUNTER_FIELDS}


def heal_all_projects() -> dict:
    """Recount every counter of every project. Returns drift statistics."""
    project_ids = list(db.session.execute(select(Project.id)).scalars())
    failed = 0
    for project_id in project_ids:
        results = recount_all(project_id)
        failed += sum(1 for value in results.values() if value is None)
    logger.info("Counter heal finished projects=%d failed_writes=%d", len(project_ids), failed)
    return {"projects": len(project_ids), "failed_writes": failed}
