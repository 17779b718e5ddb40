"""Per-user workspace document (one row per authenticated user)."""

from datetime import datetime, timezone

from budget_tracker.models import db


class UserData(db.Model):
    """Whole-document store: ``{"agencies": [...], "currentAgencyId": "..."}``.

    Writes replace the entire document; there is no per-entity versioning.
    """

    __tablename__ = "user_data"

    user_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    data = db.Column(db.JSON, nullable=False, default=dict)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "data": self.data or {},
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<UserData {self.user_id}>"
