"""Public actor profile — the identity collaborator's handle record."""

from datetime import datetime, timezone

from stepwise.models import db


class Profile(db.Model):
    """Public handle for an authenticated actor.

    Rows are written by the identity provider's sign-up hook, never by the
    content services; the core only resolves ``id -> username``.
    """

    __tablename__ = "profiles"

    id = db.Column(db.String(64), primary_key=True)
    username = db.Column(db.String(50), unique=True, nullable=False)
    display_name = db.Column(db.String(100), nullable=True)
    avatar_url = db.Column(db.String(500), nullable=True)
    bio = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_author_dict(self) -> dict:
        return {
            "username": self.username,
            "display_name": self.display_name,
            "avatar_url": self.avatar_url,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "display_name": self.display_name,
            "avatar_url": self.avatar_url,
            "bio": self.bio,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Profile {self.username}>"
