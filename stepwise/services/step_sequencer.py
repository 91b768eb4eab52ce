"""
Step Sequencer — keeps each project's step_order dense (1..N).

Persistence operations:
    replace_steps   full edit: delete all, insert by array position
    append_steps    insert a batch after the current maximum
    copy_steps      fork copy, order preserved, fork_note cleared
    insert_steps    raw batch insert (shared by the above)

In-memory editing (client-held list, no I/O):
    add_step / remove_step / move_step / normalize_order

Rules:
  - The payload's own ``step_order`` is display-only. Persistence order is
    always the position in the caller's list.
  - Every write commits on its own; there is no surrounding transaction.
  - Concurrent append_steps on one project can read the same maximum and
    write duplicate orders. Single writer per project is assumed.
"""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from stepwise.core.exceptions import InternalError
from stepwise.models import db
from stepwise.models.step import VALID_CONTEXT_MODES, PromptStep
from stepwise.services.helpers.saga import Saga

logger = logging.getLogger(__name__)

# Columns copied verbatim between step rows (fork copy, snapshot restore).
_CONTENT_FIELDS = ("title", "prompt_text", "context_mode", "output_notes", "tips")


# ── Payload helpers ──────────────────────────────────────────────────────────


def normalize_context_mode(value) -> str | None:
    """Unknown or empty context modes are stored as unset."""
    if isinstance(value, str) and value in VALID_CONTEXT_MODES:
        return value
    return None


def _row_from_payload(project_id: str, position: int, payload: dict) -> PromptStep:
    return PromptStep(
        project_id=project_id,
        step_order=position,
        title=payload.get("title"),
        prompt_text=payload.get("prompt_text") or "",
        context_mode=normalize_context_mode(payload.get("context_mode")),
        output_notes=payload.get("output_notes") or None,
        tips=payload.get("tips") or None,
        fork_note=payload.get("fork_note") or None,
    )


# ── Reads ────────────────────────────────────────────────────────────────────


def list_steps(project_id: str) -> list[PromptStep]:
    return list(
        db.session.execute(
            select(PromptStep)
            .where(PromptStep.project_id == project_id)
            .order_by(PromptStep.step_order.asc())
        ).scalars()
    )


def max_step_order(project_id: str) -> int:
    """Current maximum step_order for a project, 0 when it has no steps."""
    value = db.session.execute(
        select(func.max(PromptStep.step_order)).where(PromptStep.project_id == project_id)
    ).scalar()
    return value or 0


def count_steps(project_id: str) -> int:
    return db.session.execute(
        select(func.count(PromptStep.id)).where(PromptStep.project_id == project_id)
    ).scalar() or 0


# ── Writes ───────────────────────────────────────────────────────────────────


def insert_steps(project_id: str, payloads: Iterable[dict], *, start_at: int = 1) -> list[PromptStep]:
    """Insert a batch, numbering from ``start_at`` in iteration order.

    Raises:
        InternalError: the batch violated a row constraint or the store failed.
            Nothing from the batch is left behind.
    """
    rows = [
        _row_from_payload(project_id, start_at + i, payload)
        for i, payload in enumerate(payloads)
    ]
    if not rows:
        return []

    db.session.add_all(rows)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.warning(
            "Step batch insert failed project_id=%s size=%d: %s",
            project_id, len(rows), exc,
        )
        raise InternalError("Failed to save steps", code="StepInsertFailed") from exc

    logger.debug("Inserted %d step(s) project_id=%s start_at=%d", len(rows), project_id, start_at)
    return rows


def delete_steps(project_id: str) -> int:
    deleted = PromptStep.query.filter_by(project_id=project_id).delete(synchronize_session=False)
    db.session.commit()
    return deleted


def replace_steps(project_id: str, payloads: list[dict]) -> list[PromptStep]:
    """Replace every step of a project with ``payloads``, numbered 1..N.

    The previous steps are snapshotted first; if the insert fails the snapshot
    is written back so the project is never left without its steps.
    """
    snapshot = [_snapshot(step) for step in list_steps(project_id)]

    saga = Saga("replace_steps")
    saga.step(
        "delete_existing",
        lambda _: delete_steps(project_id),
        compensate=lambda _: _restore(project_id, snapshot),
    )
    saga.step("insert_new", lambda _: insert_steps(project_id, payloads))
    return saga.run()["insert_new"]


def append_steps(project_id: str, payloads: list[dict]) -> int:
    """Append a batch after the current maximum. Returns the new step count.

    Existing steps are not renumbered.
    """
    start = max_step_order(project_id) + 1
    insert_steps(project_id, payloads, start_at=start)
    return count_steps(project_id)


def copy_steps(source_steps: Iterable[PromptStep], target_project_id: str) -> list[PromptStep]:
    """Copy steps to another project, keeping order and dropping fork notes.

    fork_note is annotation written by a fork's owner; a fresh copy has none.
    """
    ordered = sorted(source_steps, key=lambda s: s.step_order)
    payloads = [
        {name: getattr(step, name) for name in _CONTENT_FIELDS}
        for step in ordered
    ]
    return insert_steps(target_project_id, payloads)


def _snapshot(step: PromptStep) -> dict:
    data = {name: getattr(step, name) for name in _CONTENT_FIELDS}
    data["fork_note"] = step.fork_note
    return data


def _restore(project_id: str, snapshot: list[dict]) -> None:
    if not snapshot:
        return
    insert_steps(project_id, snapshot)
    logger.warning("Restored %d step(s) after failed replace project_id=%s", len(snapshot), project_id)


# ── In-memory editing ────────────────────────────────────────────────────────
#
# The editor holds the step list client-side; each mutation renumbers the
# whole list so persistence always receives 1..N.


def normalize_order(steps: list[dict]) -> list[dict]:
    """Return copies of ``steps`` with step_order rewritten to 1..N."""
    return [{**step, "step_order": i + 1} for i, step in enumerate(steps)]


def add_step(steps: list[dict], step: dict | None = None) -> list[dict]:
    blank = {"title": "", "prompt_text": "", "context_mode": None,
             "output_notes": None, "tips": None, "fork_note": None}
    return normalize_order([*steps, {**blank, **(step or {})}])


def remove_step(steps: list[dict], index: int) -> list[dict]:
    if not 0 <= index < len(steps):
        raise IndexError(f"step index {index} out of range")
    return normalize_order(steps[:index] + steps[index + 1:])


def move_step(steps: list[dict], index: int, direction: str) -> list[dict]:
    """Swap a step with its neighbour. Moving past either end is a no-op."""
    if direction not in ("up", "down"):
        raise ValueError("direction must be 'up' or 'down'")
    if not 0 <= index < len(steps):
        raise IndexError(f"step index {index} out of range")

    target = index - 1 if direction == "up" else index + 1
    items = list(steps)
    if 0 <= target < len(items):
        items[index], items[target] = items[target], items[index]
    return normalize_order(items)
