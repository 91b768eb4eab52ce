"""
Profile Service — read views over one author's projects, forks and stars.

All listings return project "cards": the project row plus author handle,
tag names and step count. Visibility follows the project page rule: an
author sees every own project, everyone else sees published AND approved
projects only.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import aliased

from stepwise.core.exceptions import NotFoundError
from stepwise.models import db
from stepwise.models.profile import Profile
from stepwise.models.project import Project, Star
from stepwise.models.step import PromptStep


def _step_count():
    return (
        select(func.count(PromptStep.id))
        .where(PromptStep.project_id == Project.id)
        .correlate(Project)
        .scalar_subquery()
        .label("step_count")
    )


def _public():
    return Project.is_published.is_(True) & Project.is_approved.is_(True)


def _card(project: Project, step_count: int | None) -> dict:
    data = project.to_dict()
    data["author"] = {
        "username": project.author.username if project.author else "unknown",
        "avatar_url": project.author.avatar_url if project.author else None,
    }
    data["tags"] = [tag.tag_name for tag in project.tags]
    data["step_count"] = step_count or 0
    return data


def get_profile(username: str) -> Profile:
    profile = db.session.execute(
        select(Profile).where(Profile.username == username)
    ).scalar_one_or_none()
    if profile is None:
        raise NotFoundError("Profile", username)
    return profile


def list_author_projects(username: str, viewer_id: str | None = None) -> list[dict]:
    """Author's projects, newest first. Drafts only when the viewer is the author."""
    profile = get_profile(username)
    query = select(Project, _step_count()).where(Project.author_id == profile.id)
    if viewer_id != profile.id:
        query = query.where(_public())

    rows = db.session.execute(query.order_by(Project.created_at.desc())).all()
    return [_card(project, count) for project, count in rows]


def list_forked_projects(username: str) -> list[dict]:
    """Author's public forks, each with the title and author of its source.

    Deleting a source nulls ``forked_from_id``, so such projects drop out.
    """
    profile = get_profile(username)
    source = aliased(Project)
    source_author = aliased(Profile)

    rows = db.session.execute(
        select(Project, _step_count(), source.title, source_author.username)
        .join(source, Project.forked_from_id == source.id)
        .join(source_author, source.author_id == source_author.id)
        .where(
            Project.author_id == profile.id,
            Project.forked_from_id.is_not(None),
            _public(),
        )
        .order_by(Project.created_at.desc())
    ).all()

    forks = []
    for project, count, original_title, original_author in rows:
        data = _card(project, count)
        data["original_title"] = original_title
        data["original_author_username"] = original_author
        forks.append(data)
    return forks


def list_starred_projects(username: str, viewer_id: str | None = None) -> list[dict]:
    """Projects the user starred, most recently starred first.

    Starred projects that have since gone private are hidden unless the
    viewer owns them.
    """
    profile = get_profile(username)
    query = (
        select(Project, _step_count())
        .join(Star, Star.project_id == Project.id)
        .where(Star.user_id == profile.id)
    )
    if viewer_id is None:
        query = query.where(_public())
    else:
        query = query.where(_public() | (Project.author_id == viewer_id))

    rows = db.session.execute(query.order_by(Star.created_at.desc())).all()
    return [_card(project, count) for project, count in rows]


def get_user_stats(username: str) -> dict:
    """Totals over the author's public projects, read from the cached counters."""
    profile = get_profile(username)
    total_projects, total_stars, total_forks = db.session.execute(
        select(
            func.count(Project.id),
            func.coalesce(func.sum(Project.star_count), 0),
            func.coalesce(func.sum(Project.fork_count), 0),
        ).where(Project.author_id == profile.id, _public())
    ).one()
    return {
        "totalProjects": total_projects,
        "totalStars": int(total_stars),
        "totalForks": int(total_forks),
    }
