"""
Project graph models — Project, ProjectTag, Star.

A Project is a published or draft prompt workflow owned by one actor.
star_count / fork_count / comment_count are denormalized caches of child row
counts; they are written only by ``stepwise.services.counter_sync``.
"""

import uuid
from datetime import datetime, timezone

from stepwise.models import db

# ── Constants ─────────────────────────────────────────────────────────────────

VALID_TOOLS = frozenset({
    "cursor",
    "windsurf",
    "bolt",
    "lovable",
    "claude",
    "replit",
    "other",
})

VALID_CATEGORIES = frozenset({
    "landing-page",
    "dashboard",
    "api",
    "mobile-app",
    "cli-tool",
    "chrome-extension",
    "full-stack-app",
    "component",
    "other",
})

VALID_DIFFICULTIES = frozenset({"beginner", "intermediate", "advanced"})

IMPORT_METHODS = frozenset({"session_export", "manual"})

COUNTER_FIELDS = ("star_count", "fork_count", "comment_count")


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class Project(db.Model):
    """Published or draft workflow.

    Lineage:
        forked_from_id and inspired_by_id are set once, at fork time, to the
        same source id and never mutated afterwards, so lineage is a forest.
        Deleting a source nulls the reference on its forks.
    """

    __tablename__ = "projects"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    author_id = db.Column(
        db.String(64),
        db.ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(80), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    tool = db.Column(db.String(30), nullable=False, default="other")
    category = db.Column(db.String(30), nullable=False, default="other")
    difficulty = db.Column(db.String(20), nullable=True)
    demo_url = db.Column(db.String(500), nullable=True)
    import_method = db.Column(
        db.String(20), nullable=True,
        comment="session_export | manual",
    )

    is_published = db.Column(db.Boolean, nullable=False, default=False)
    is_approved = db.Column(db.Boolean, nullable=False, default=False)

    forked_from_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    inspired_by_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
    )

    # ── Denormalized counters ──
    star_count = db.Column(db.Integer, nullable=False, default=0)
    fork_count = db.Column(db.Integer, nullable=False, default=0)
    comment_count = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    author = db.relationship("Profile", lazy="joined")
    steps = db.relationship(
        "PromptStep",
        backref="project",
        cascade="all, delete-orphan",
        order_by="PromptStep.step_order",
    )
    tags = db.relationship(
        "ProjectTag",
        backref="project",
        cascade="all, delete-orphan",
        order_by="ProjectTag.tag_name",
    )
    stars = db.relationship("Star", backref="project", cascade="all, delete-orphan")
    comments = db.relationship(
        "Comment",
        backref="project",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.CheckConstraint("star_count >= 0", name="ck_projects_star_count_nonneg"),
        db.CheckConstraint("fork_count >= 0", name="ck_projects_fork_count_nonneg"),
        db.CheckConstraint("comment_count >= 0", name="ck_projects_comment_count_nonneg"),
        db.Index("ix_projects_published_approved", "is_published", "is_approved"),
    )

    @property
    def is_public(self) -> bool:
        return bool(self.is_published and self.is_approved)

    def to_dict(self) -> dict:
        """Serialize project row fields for API responses."""
        return {
            "id": self.id,
            "author_id": self.author_id,
            "title": self.title,
            "slug": self.slug,
            "description": self.description,
            "tool": self.tool,
            "category": self.category,
            "difficulty": self.difficulty,
            "demo_url": self.demo_url,
            "import_method": self.import_method,
            "is_published": self.is_published,
            "is_approved": self.is_approved,
            "forked_from_id": self.forked_from_id,
            "inspired_by_id": self.inspired_by_id,
            "star_count": self.star_count,
            "fork_count": self.fork_count,
            "comment_count": self.comment_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Project {self.id}: {self.slug}>"


class ProjectTag(db.Model):
    """(project, tag_name) pair, unique per project."""

    __tablename__ = "project_tags"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tag_name = db.Column(db.String(50), nullable=False)

    __table_args__ = (
        db.UniqueConstraint("project_id", "tag_name", name="uq_project_tags_project_tag"),
    )

    def __repr__(self) -> str:
        return f"<ProjectTag {self.project_id}: {self.tag_name}>"


class Star(db.Model):
    """Existence of a row means ``user_id`` starred ``project_id``."""

    __tablename__ = "stars"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.String(64),
        db.ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "project_id", name="uq_stars_user_project"),
    )

    def __repr__(self) -> str:
        return f"<Star {self.user_id} -> {self.project_id}>"
