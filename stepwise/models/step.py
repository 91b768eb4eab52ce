"""PromptStep — one ordered unit of a Project."""

import uuid
from datetime import datetime, timezone

from stepwise.models import db

VALID_CONTEXT_MODES = frozenset({
    "inline",
    "composer",
    "cursor_rule",
    "terminal",
    "chat",
    "cascade",
})


def _uuid():
    return str(uuid.uuid4())


class PromptStep(db.Model):
    """Ordered prompt step.

    For a fixed project the set of step_order values is exactly {1..N}.
    Ordering is owned by ``stepwise.services.step_sequencer``; nothing else
    writes step_order.
    """

    __tablename__ = "prompt_steps"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    step_order = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(200), nullable=False)
    prompt_text = db.Column(db.Text, nullable=False, default="")
    context_mode = db.Column(
        db.String(20), nullable=True,
        comment="inline | composer | cursor_rule | terminal | chat | cascade",
    )
    output_notes = db.Column(db.Text, nullable=True)
    tips = db.Column(db.Text, nullable=True)
    fork_note = db.Column(db.Text, nullable=True, comment="Why I changed this (forks only)")
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.CheckConstraint("step_order >= 1", name="ck_prompt_steps_order_positive"),
        db.Index("ix_prompt_steps_project_order", "project_id", "step_order"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "step_order": self.step_order,
            "title": self.title,
            "prompt_text": self.prompt_text,
            "context_mode": self.context_mode,
            "output_notes": self.output_notes,
            "tips": self.tips,
            "fork_note": self.fork_note,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<PromptStep {self.project_id}#{self.step_order}: {self.title}>"
