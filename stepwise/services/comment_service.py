"""
Comment Graph Manager — two-level threads, single pin per project.

Write rules:
  - Replies attach to a top-level comment of the same project. Reply-to-reply
    is rejected here so the stored graph never exceeds depth 2.
  - Only the comment author may delete; replies go with their parent and the
    project's comment_count is then recounted from the rows.
  - Only the project owner may pin, and not their own comment. Pinning is
    unpin-all followed by pin-one; a crash between the two leaves zero pins,
    never two.

``build_comment_tree`` is pure and works on any list of comments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from stepwise.core.exceptions import (
    InternalError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from stepwise.models import db
from stepwise.models.comment import Comment
from stepwise.models.project import Project
from stepwise.services import counter_sync

logger = logging.getLogger(__name__)

DEFAULT_MAX_LENGTH = 2000

PIN = "pin"
UNPIN = "unpin"


@dataclass
class CommentNode:
    comment: Comment
    replies: list[Comment] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = self.comment.to_dict()
        data["replies"] = [reply.to_dict() for reply in self.replies]
        return data


# ── Tree building ────────────────────────────────────────────────────────────


def _created_key(comment: Comment):
    return comment.created_at


def build_comment_tree(comments: list[Comment]) -> list[CommentNode]:
    """Group a flat comment list into top-level nodes with their replies.

    Top-level: pinned first, then oldest first. Replies: oldest first.
    Replies whose parent is not a top-level comment in ``comments`` are
    dropped.
    """
    top_level = [c for c in comments if c.parent_comment_id is None]
    top_level.sort(key=lambda c: (not c.is_pinned, c.created_at))

    nodes = {c.id: CommentNode(comment=c) for c in top_level}
    for reply in sorted((c for c in comments if c.parent_comment_id is not None), key=_created_key):
        node = nodes.get(reply.parent_comment_id)
        if node is not None:
            node.replies.append(reply)

    return [nodes[c.id] for c in top_level]


def list_comments(project_id: str) -> list[Comment]:
    return list(
        db.session.execute(
            select(Comment).where(Comment.project_id == project_id)
        ).scalars()
    )


def get_comment_tree(project_id: str) -> list[dict]:
    if db.session.get(Project, project_id) is None:
        raise NotFoundError("Project", project_id)
    return [node.to_dict() for node in build_comment_tree(list_comments(project_id))]


# ── Writes ───────────────────────────────────────────────────────────────────


def _max_length() -> int:
    return int(current_app.config.get("COMMENT_MAX_LENGTH", DEFAULT_MAX_LENGTH))


def _clean_body(body) -> str:
    if not isinstance(body, str) or not body.strip():
        raise ValidationError("Comment cannot be empty", details={"body": "required"})
    limit = _max_length()
    if len(body) > limit:
        raise ValidationError(
            f"Comment must be at most {limit} characters",
            details={"body": f"max length {limit}"},
        )
    return body


def add_comment(project_id: str, user_id: str, body, parent_comment_id: str | None = None) -> Comment:
    """Insert a comment or reply and bump the project's comment_count.

    Raises:
        NotFoundError: project (or parent comment) does not exist.
        ValidationError: empty/oversized body, or the parent is itself a
            reply or belongs to another project.
    """
    body = _clean_body(body)
    if db.session.get(Project, project_id) is None:
        raise NotFoundError("Project", project_id)

    if parent_comment_id is not None:
        parent = db.session.get(Comment, parent_comment_id)
        if parent is None:
            raise NotFoundError("Comment", parent_comment_id, message="Parent comment not found")
        if parent.project_id != project_id:
            raise ValidationError(
                "Parent comment belongs to a different project",
                code="ParentProjectMismatch",
                details={"parentCommentId": parent_comment_id},
            )
        if parent.is_reply:
            raise ValidationError(
                "Replies can only be made to top-level comments",
                code="NestingTooDeep",
                details={"parentCommentId": parent_comment_id},
            )

    comment = Comment(
        project_id=project_id,
        user_id=user_id,
        body=body,
        parent_comment_id=parent_comment_id,
    )
    db.session.add(comment)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise InternalError("Failed to add comment", code="CommentInsertFailed") from exc

    counter_sync.increment_comments(project_id)
    logger.info(
        "Comment added comment_id=%s project_id=%s reply=%s",
        comment.id, project_id, parent_comment_id is not None,
    )
    return comment


def delete_comment(comment_id: str, user_id: str) -> None:
    """Delete a comment (and its replies), then recount the project's comments.

    Raises:
        NotFoundError: comment does not exist.
        UnauthorizedError: ``user_id`` is not the comment author.
    """
    comment = db.session.get(Comment, comment_id)
    if comment is None:
        raise NotFoundError("Comment", comment_id)
    if comment.user_id != user_id:
        raise UnauthorizedError("You can only delete your own comments", code="NotCommentAuthor")

    project_id = comment.project_id
    db.session.delete(comment)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise InternalError("Failed to delete comment", code="CommentDeleteFailed") from exc

    counter_sync.recount_comments(project_id)
    logger.info("Comment deleted comment_id=%s project_id=%s", comment_id, project_id)


def _load_pin_target(comment_id: str, project_id: str, user_id: str) -> Comment:
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project", project_id)
    if project.author_id != user_id:
        raise UnauthorizedError("Only the project owner can pin comments", code="NotProjectOwner")

    comment = db.session.get(Comment, comment_id)
    if comment is None or comment.project_id != project_id:
        raise NotFoundError("Comment", comment_id)
    return comment


def pin_comment(comment_id: str, project_id: str, user_id: str) -> Comment:
    """Make ``comment_id`` the single pinned comment of its project.

    Raises:
        NotFoundError: project missing, or comment missing / not in project.
        UnauthorizedError: actor does not own the project.
        ValidationError (CannotPinOwnComment): owner tried to pin own comment.
        ValidationError (CannotPinReply): only top-level comments can be pinned.
    """
    comment = _load_pin_target(comment_id, project_id, user_id)
    if comment.is_reply:
        raise ValidationError("Only top-level comments can be pinned", code="CannotPinReply")
    if comment.user_id == user_id:
        raise ValidationError("You cannot pin your own comment", code="CannotPinOwnComment")

    try:
        db.session.execute(
            update(Comment)
            .where(Comment.project_id == project_id, Comment.is_pinned.is_(True))
            .values(is_pinned=False)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()

        db.session.execute(
            update(Comment)
            .where(Comment.id == comment_id)
            .values(is_pinned=True)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise InternalError("Failed to pin comment", code="PinFailed") from exc

    logger.info("Comment pinned comment_id=%s project_id=%s", comment_id, project_id)
    return db.session.get(Comment, comment_id)


def unpin_comment(comment_id: str, project_id: str, user_id: str) -> Comment:
    comment = _load_pin_target(comment_id, project_id, user_id)
    comment.is_pinned = False
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise InternalError("Failed to unpin comment", code="PinFailed") from exc
    return comment


def set_pin(comment_id: str, project_id: str, user_id: str, action: str) -> Comment:
    if action == PIN:
        return pin_comment(comment_id, project_id, user_id)
    if action == UNPIN:
        return unpin_comment(comment_id, project_id, user_id)
    raise ValidationError("action must be 'pin' or 'unpin'", details={"action": action})
