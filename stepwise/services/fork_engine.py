"""
Fork Engine — deep, lineage-tracked copy of a public project.

A fork is a new *draft* project owned by the requesting actor with the
source's steps and tags copied over and ``forked_from_id`` /
``inspired_by_id`` pointing back at the source.

State machine:

    Loading -> SlugResolving -> Inserted -> StepsCopied -> TagsCopied -> Counted -> Done
                                   \\___________\\______________> RolledBack

Any failure before TagsCopied completes deletes the new project row (which
cascades to whatever steps were written) and re-raises. After TagsCopied
there is no rollback path: a failed fork-counter increment is logged and
tolerated, the fork stands.

Usage:
    from stepwise.services.fork_engine import fork_project

    result = fork_project(source_id, actor_id)
    result.to_dict()   # {"id": ..., "slug": ..., "actorHandle": ...}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError

from stepwise.core.exceptions import InternalError, NotFoundError
from stepwise.models import db
from stepwise.models.profile import Profile
from stepwise.models.project import Project, ProjectTag
from stepwise.services import counter_sync, slug_service, step_sequencer
from stepwise.services.helpers.saga import Saga

logger = logging.getLogger(__name__)


class ForkState(str, Enum):
    LOADING = "Loading"
    SLUG_RESOLVING = "SlugResolving"
    INSERTED = "Inserted"
    STEPS_COPIED = "StepsCopied"
    TAGS_COPIED = "TagsCopied"
    COUNTED = "Counted"
    DONE = "Done"
    ROLLED_BACK = "RolledBack"


@dataclass(frozen=True)
class ForkResult:
    id: str
    slug: str
    actor_handle: str

    def to_dict(self) -> dict:
        return {"id": self.id, "slug": self.slug, "actorHandle": self.actor_handle}


# Project columns copied verbatim from the source.
_COPIED_FIELDS = ("title", "description", "tool", "category", "difficulty")


def load_forkable_source(source_id: str) -> Project:
    """Return the source project if it is published AND approved.

    Drafts and unapproved projects cannot be forked by anyone, the owner
    included, and are reported exactly like a missing project.
    """
    source = db.session.get(Project, source_id)
    if source is None or not source.is_public:
        raise NotFoundError(
            "Project",
            source_id,
            code="SourceNotAvailable",
            message="Project not found or not available for forking",
        )
    return source


def resolve_actor_handle(actor_id: str) -> str:
    profile = db.session.get(Profile, actor_id)
    if profile is None:
        # An authenticated actor always has a profile; reaching here is a bug upstream.
        logger.error("Authenticated actor has no profile actor_id=%s", actor_id)
        raise InternalError("User profile not found", code="ActorProfileMissing")
    return profile.username


def _insert_fork_row(source: Project, actor_id: str, slug: str) -> Project:
    fork = Project(
        author_id=actor_id,
        slug=slug,
        is_published=False,
        is_approved=False,
        forked_from_id=source.id,
        inspired_by_id=source.id,
        import_method="manual",
        star_count=0,
        fork_count=0,
        comment_count=0,
        **{name: getattr(source, name) for name in _COPIED_FIELDS},
    )
    db.session.add(fork)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise InternalError("Failed to create forked project", code="ForkInsertFailed") from exc
    return fork


def _copy_tags(tag_names: list[str], target_project_id: str) -> int:
    if not tag_names:
        return 0
    db.session.add_all(ProjectTag(project_id=target_project_id, tag_name=name) for name in tag_names)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise InternalError("Failed to copy tags", code="TagInsertFailed") from exc
    return len(tag_names)


def _delete_project(project_id: str) -> None:
    project = db.session.get(Project, project_id)
    if project is not None:
        db.session.delete(project)
        db.session.commit()


def _enter(state: ForkState, source_id: str) -> None:
    logger.debug("Fork state=%s source_id=%s", state.value, source_id)


def fork_project(source_id: str, actor_id: str) -> ForkResult:
    """Fork ``source_id`` into a new draft owned by ``actor_id``.

    Raises:
        NotFoundError (SourceNotAvailable): source missing, draft or unapproved.
        InternalError (ActorProfileMissing): actor has no public handle.
        ConflictError (SlugExhausted): no free slug after bounded retries.
        InternalError: step or tag copy failed; the new project was removed.
    """
    _enter(ForkState.LOADING, source_id)
    source = load_forkable_source(source_id)
    # Detach plain values before any commit expires the ORM objects.
    source_steps = list(source.steps)
    tag_names = [tag.tag_name for tag in source.tags]
    handle = resolve_actor_handle(actor_id)

    _enter(ForkState.SLUG_RESOLVING, source_id)
    slug = slug_service.unique_fork_slug(source.slug)

    saga = Saga("fork")
    saga.step(
        ForkState.INSERTED.value,
        lambda _: _insert_fork_row(source, actor_id, slug),
        compensate=lambda results: _delete_project(results[ForkState.INSERTED.value].id),
    )
    saga.step(
        ForkState.STEPS_COPIED.value,
        lambda results: step_sequencer.copy_steps(source_steps, results[ForkState.INSERTED.value].id),
    )
    saga.step(
        ForkState.TAGS_COPIED.value,
        lambda results: _copy_tags(tag_names, results[ForkState.INSERTED.value].id),
    )

    try:
        results = saga.run()
    except Exception:
        logger.warning(
            "Fork rolled back source_id=%s actor_id=%s completed=%s state=%s",
            source_id, actor_id, saga.completed, ForkState.ROLLED_BACK.value,
        )
        raise

    fork = results[ForkState.INSERTED.value]
    fork_id, fork_slug = fork.id, fork.slug

    _enter(ForkState.COUNTED, source_id)
    if counter_sync.increment_forks(source_id) is None:
        logger.warning("Fork counter not incremented source_id=%s fork_id=%s", source_id, fork_id)

    logger.info(
        "Project forked source_id=%s fork_id=%s actor_id=%s steps=%d tags=%d state=%s",
        source_id, fork_id, actor_id, len(source_steps), len(tag_names), ForkState.DONE.value,
    )
    return ForkResult(id=fork_id, slug=fork_slug, actor_handle=handle)
