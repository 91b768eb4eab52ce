"""
Comment — two-level discussion thread per project.

parent_comment_id is NULL for top-level comments. Replies point at a
top-level comment; reply-to-reply is rejected by the comment service at write
time. Deleting a top-level comment removes its replies (ORM cascade plus the
ON DELETE CASCADE foreign key).
"""

import uuid
from datetime import datetime, timezone

from stepwise.models import db


def _uuid():
    return str(uuid.uuid4())


class Comment(db.Model):
    __tablename__ = "comments"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(
        db.String(64),
        db.ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    parent_comment_id = db.Column(
        db.String(36),
        db.ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    body = db.Column(db.Text, nullable=False)
    is_pinned = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    author = db.relationship("Profile", lazy="joined")
    replies = db.relationship(
        "Comment",
        cascade="all, delete-orphan",
        backref=db.backref("parent", remote_side=[id]),
        order_by="Comment.created_at",
    )

    __table_args__ = (
        db.Index("ix_comments_project_pinned", "project_id", "is_pinned"),
    )

    @property
    def is_reply(self) -> bool:
        return self.parent_comment_id is not None

    def to_dict(self) -> dict:
        author = self.author.to_author_dict() if self.author else {
            "username": "unknown",
            "display_name": None,
            "avatar_url": None,
        }
        return {
            "id": self.id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "parent_comment_id": self.parent_comment_id,
            "body": self.body,
            "is_pinned": self.is_pinned,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "author": author,
        }

    def __repr__(self) -> str:
        return f"<Comment {self.id} project={self.project_id}>"
