"""
Project Service — create, edit, delete, read and append for owned workflows.

Every multi-table write is a Saga over single-commit steps:

    create  insert project -> insert steps -> insert tags
            steps failure deletes the project; a tag failure is logged and
            the project stands without tags.
    update  update row -> replace steps (snapshot restore on failure)
            -> replace tags
    append  validate -> append after current max -> touch updated_at

Visibility: drafts and unapproved projects are readable only by their owner;
everyone else gets NotFound.
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from stepwise.core.exceptions import (
    InternalError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from stepwise.models import db
from stepwise.models.profile import Profile
from stepwise.models.project import (
    VALID_CATEGORIES,
    VALID_DIFFICULTIES,
    VALID_TOOLS,
    Project,
    ProjectTag,
)
from stepwise.models.step import PromptStep
from stepwise.services import ingestion, slug_service, star_service, step_sequencer
from stepwise.services.helpers.saga import Saga
from stepwise.utils.helpers import utcnow

logger = logging.getLogger(__name__)

TITLE_MAX = 100
TEXT_MAX = 2000
STEP_TITLE_MAX = 200
DEMO_URL_MAX = 500
TAG_MAX = 50
DEFAULT_MAX_TAGS = 10


# ═════════════════════════════════════════════════════════════════════════════
# Payload validation
# ═════════════════════════════════════════════════════════════════════════════


def _optional_str(errors: dict, path: str, value, max_len: int) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        errors[path] = "Expected string"
        return None
    if len(value) > max_len:
        errors[path] = f"At most {max_len} characters"
        return None
    return value or None


def _validate_step_payload(errors: dict, index: int, raw) -> dict:
    prefix = f"steps.{index}"
    if not isinstance(raw, dict):
        errors[prefix] = "Expected object"
        return {}

    title = raw.get("title")
    if not isinstance(title, str) or not title.strip():
        errors[f"{prefix}.title"] = "Step title is required"
    elif len(title) > STEP_TITLE_MAX:
        errors[f"{prefix}.title"] = f"At most {STEP_TITLE_MAX} characters"

    prompt_text = raw.get("prompt_text", "")
    if not isinstance(prompt_text, str):
        errors[f"{prefix}.prompt_text"] = "Expected string"

    return {
        "title": title,
        "prompt_text": prompt_text if isinstance(prompt_text, str) else "",
        "context_mode": raw.get("context_mode"),
        "output_notes": _optional_str(errors, f"{prefix}.output_notes", raw.get("output_notes"), TEXT_MAX),
        "tips": _optional_str(errors, f"{prefix}.tips", raw.get("tips"), TEXT_MAX),
        "fork_note": _optional_str(errors, f"{prefix}.fork_note", raw.get("fork_note"), TEXT_MAX),
    }


def _validate_tags(errors: dict, raw) -> list[str]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        errors["tags"] = "Expected array"
        return []
    limit = int(current_app.config.get("MAX_TAGS_PER_PROJECT", DEFAULT_MAX_TAGS))
    if len(raw) > limit:
        errors["tags"] = f"At most {limit} tags"
        return []

    tags: list[str] = []
    for i, tag in enumerate(raw):
        if not isinstance(tag, str) or not tag.strip() or len(tag) > TAG_MAX:
            errors[f"tags.{i}"] = f"Tag must be 1-{TAG_MAX} characters"
            continue
        if tag not in tags:
            tags.append(tag)
    return tags


def validate_project_payload(data) -> dict:
    """Validate a create/update body and return the cleaned fields.

    Raises:
        ValidationError: with ``details`` mapping each failing field path
            (``title``, ``steps.2.title``, ``tags.0``) to its problem.
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    errors: dict[str, str] = {}

    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        errors["title"] = "Title is required"
    elif len(title) > TITLE_MAX:
        errors["title"] = f"At most {TITLE_MAX} characters"

    tool = data.get("tool")
    if tool not in VALID_TOOLS:
        errors["tool"] = f"Must be one of: {', '.join(sorted(VALID_TOOLS))}"

    category = data.get("category")
    if category not in VALID_CATEGORIES:
        errors["category"] = f"Must be one of: {', '.join(sorted(VALID_CATEGORIES))}"

    difficulty = data.get("difficulty") or None
    if difficulty is not None and difficulty not in VALID_DIFFICULTIES:
        errors["difficulty"] = f"Must be one of: {', '.join(sorted(VALID_DIFFICULTIES))}"

    demo_url = _optional_str(errors, "demo_url", data.get("demo_url"), DEMO_URL_MAX)
    if demo_url and not demo_url.startswith(("http://", "https://")):
        errors["demo_url"] = "Invalid url"

    is_published = data.get("is_published")
    if not isinstance(is_published, bool):
        errors["is_published"] = "Expected boolean"

    raw_steps = data.get("steps")
    steps: list[dict] = []
    if not isinstance(raw_steps, list) or not raw_steps:
        errors["steps"] = "At least one step is required"
    else:
        steps = [_validate_step_payload(errors, i, s) for i, s in enumerate(raw_steps)]

    cleaned = {
        "title": title,
        "description": _optional_str(errors, "description", data.get("description"), TEXT_MAX),
        "tool": tool,
        "category": category,
        "difficulty": difficulty,
        "demo_url": demo_url,
        "is_published": is_published,
        "tags": _validate_tags(errors, data.get("tags")),
        "steps": steps,
    }

    if errors:
        raise ValidationError("Validation failed", code="InvalidProject", details=errors)
    return cleaned


# ═════════════════════════════════════════════════════════════════════════════
# Internals
# ═════════════════════════════════════════════════════════════════════════════


def _author_username(actor_id: str) -> str:
    profile = db.session.get(Profile, actor_id)
    return profile.username if profile else "unknown"


def _get_owned_project(project_id: str, actor_id: str, verb: str) -> Project:
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project", project_id)
    if project.author_id != actor_id:
        raise UnauthorizedError(f"You can only {verb} your own projects", code="NotProjectOwner")
    return project


def _commit(message: str, code: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise InternalError(message, code=code) from exc


def _delete_project_row(project_id: str) -> None:
    project = db.session.get(Project, project_id)
    if project is not None:
        db.session.delete(project)
        db.session.commit()


def _insert_tags(project_id: str, tags: list[str]) -> int:
    if not tags:
        return 0
    db.session.add_all(ProjectTag(project_id=project_id, tag_name=t) for t in tags)
    _commit("Failed to save tags", "TagInsertFailed")
    return len(tags)


def _replace_tags(project_id: str, tags: list[str]) -> int:
    ProjectTag.query.filter_by(project_id=project_id).delete(synchronize_session=False)
    _commit("Failed to update tags", "TagDeleteFailed")
    return _insert_tags(project_id, tags)


def _insert_tags_tolerant(project_id: str, tags: list[str]) -> int:
    try:
        return _insert_tags(project_id, tags)
    except InternalError:
        logger.warning("Tags not saved on create project_id=%s tags=%s", project_id, tags)
        return 0


# ═════════════════════════════════════════════════════════════════════════════
# Writes
# ═════════════════════════════════════════════════════════════════════════════


def create_project(actor_id: str, data: dict) -> dict:
    """Create a project with its steps and tags.

    Returns ``{"id", "slug", "authorUsername"}``.

    Raises:
        ValidationError: invalid body.
        ConflictError (SlugExhausted): no free slug for the title.
        InternalError: steps could not be saved; the project was removed.
    """
    fields = validate_project_payload(data)
    slug = slug_service.unique_slug_for_title(fields["title"])

    def insert_project(_):
        project = Project(
            author_id=actor_id,
            title=fields["title"],
            slug=slug,
            description=fields["description"],
            tool=fields["tool"],
            category=fields["category"],
            difficulty=fields["difficulty"],
            demo_url=fields["demo_url"],
            is_published=fields["is_published"],
            # Publishing auto-approves.
            is_approved=fields["is_published"],
            import_method="session_export",
        )
        db.session.add(project)
        _commit("Failed to create project", "ProjectInsertFailed")
        return project.id

    saga = Saga("create_project")
    saga.step("project", insert_project, compensate=lambda r: _delete_project_row(r["project"]))
    saga.step("steps", lambda r: step_sequencer.insert_steps(r["project"], fields["steps"]))
    saga.step("tags", lambda r: _insert_tags_tolerant(r["project"], fields["tags"]))
    results = saga.run()

    project_id = results["project"]
    logger.info(
        "Project created project_id=%s slug=%s steps=%d published=%s",
        project_id, slug, len(fields["steps"]), fields["is_published"],
    )
    return {"id": project_id, "slug": slug, "authorUsername": _author_username(actor_id)}


def update_project(project_id: str, actor_id: str, data: dict) -> dict:
    """Overwrite a project's fields, steps and tags. The slug never changes.

    Raises:
        NotFoundError / UnauthorizedError: missing or not owned.
        ValidationError: invalid body.
        InternalError: a storage step failed (steps restored if possible).
    """
    project = _get_owned_project(project_id, actor_id, "edit")
    fields = validate_project_payload(data)
    slug = project.slug

    for name in ("title", "description", "tool", "category", "difficulty", "demo_url", "is_published"):
        setattr(project, name, fields[name])
    project.is_approved = fields["is_published"]
    _commit("Failed to update project", "ProjectUpdateFailed")

    step_sequencer.replace_steps(project_id, fields["steps"])
    _replace_tags(project_id, fields["tags"])

    logger.info("Project updated project_id=%s steps=%d", project_id, len(fields["steps"]))
    return {"id": project_id, "slug": slug, "authorUsername": _author_username(actor_id)}


def delete_project(project_id: str, actor_id: str) -> None:
    """Delete an owned project. Steps, tags, stars and comments go with it;
    forks survive with their lineage nulled."""
    project = _get_owned_project(project_id, actor_id, "delete")
    db.session.delete(project)
    _commit("Failed to delete project", "ProjectDeleteFailed")
    logger.info("Project deleted project_id=%s", project_id)


def append_steps_to_project(project_id: str, actor_id: str, records) -> dict:
    """Append imported step records to an owned project.

    ``records`` use the export shape (``output_summary``, ``tips``); they are
    mapped onto stored step fields and numbered after the current maximum.

    Returns ``{"success": True, "totalSteps": n}``.
    """
    project = _get_owned_project(project_id, actor_id, "append to")

    if not isinstance(records, list) or not records:
        raise ValidationError("At least one step is required", details={"steps": "required"})
    try:
        steps = ingestion.validate_step_records(records, require_order=False)
    except ingestion.StepSchemaError as exc:
        raise ValidationError(str(exc), code="SchemaViolation", details={exc.path: exc.constraint}) from exc

    payloads = [
        {
            "title": s.title,
            "prompt_text": s.prompt_text,
            "context_mode": s.context_mode,
            "output_notes": s.output_summary or None,
            "tips": s.tips or None,
        }
        for s in steps
    ]
    total = step_sequencer.append_steps(project_id, payloads)

    project.updated_at = utcnow()
    _commit("Failed to update project", "ProjectUpdateFailed")

    logger.info("Steps appended project_id=%s added=%d total=%d", project_id, len(payloads), total)
    return {"success": True, "totalSteps": total}


# ═════════════════════════════════════════════════════════════════════════════
# Reads
# ═════════════════════════════════════════════════════════════════════════════


def _lineage_ref(project_id: str | None) -> dict | None:
    if project_id is None:
        return None
    ref = db.session.get(Project, project_id)
    if ref is None:
        return None
    return {
        "title": ref.title,
        "slug": ref.slug,
        "author_username": ref.author.username if ref.author else "unknown",
    }


def get_project_detail(username: str, slug: str, viewer_id: str | None = None) -> dict:
    """Project page payload. Hidden projects raise NotFound for non-owners."""
    project = db.session.execute(
        select(Project)
        .join(Profile, Project.author_id == Profile.id)
        .where(Profile.username == username, Project.slug == slug)
    ).scalar_one_or_none()

    if project is None:
        raise NotFoundError("Project", slug)
    if not project.is_public and project.author_id != viewer_id:
        raise NotFoundError("Project", slug)

    data = project.to_dict()
    data["author"] = project.author.to_author_dict()
    data["steps"] = [step.to_dict() for step in project.steps]
    data["tags"] = [tag.tag_name for tag in project.tags]
    data["forked_from"] = _lineage_ref(project.forked_from_id)
    data["inspired_by"] = _lineage_ref(project.inspired_by_id)
    data["viewer_starred"] = star_service.is_starred(project.id, viewer_id)
    return data


def list_my_projects(actor_id: str) -> list[dict]:
    """Owner's projects, most recently updated first, with step counts."""
    step_count = (
        select(func.count(PromptStep.id))
        .where(PromptStep.project_id == Project.id)
        .correlate(Project)
        .scalar_subquery()
    )
    rows = db.session.execute(
        select(Project, step_count.label("step_count"))
        .where(Project.author_id == actor_id)
        .order_by(Project.updated_at.desc())
    ).all()

    return [
        {
            "id": project.id,
            "title": project.title,
            "slug": project.slug,
            "is_published": project.is_published,
            "updated_at": project.updated_at.isoformat() if project.updated_at else None,
            "step_count": count or 0,
        }
        for project, count in rows
    ]
