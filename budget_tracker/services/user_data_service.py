"""User data service — point-read and upsert of the per-user workspace document."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from budget_tracker.core.exceptions import ValidationError
from budget_tracker.models import db
from budget_tracker.models.user_data import UserData

logger = logging.getLogger(__name__)


def get_user_data(user_id: str) -> UserData | None:
    """Return the stored document row for ``user_id`` or None."""
    return db.session.get(UserData, user_id)


def validate_document(data) -> dict:
    """Check the document shape ``{"agencies": [...], "currentAgencyId": str}``.

    Only the envelope is validated; agency contents are opaque to the backend.
    """
    if not isinstance(data, dict):
        raise ValidationError("data must be an object")
    agencies = data.get("agencies")
    if not isinstance(agencies, list) or not agencies:
        raise ValidationError("agencies must be a non-empty list", details={"agencies": "invalid"})
    if not all(isinstance(a, dict) and a.get("id") for a in agencies):
        raise ValidationError("every agency needs an id", details={"agencies": "missing_id"})
    current_id = data.get("currentAgencyId")
    if current_id is not None and not isinstance(current_id, str):
        raise ValidationError("currentAgencyId must be a string", details={"currentAgencyId": "invalid"})
    return {"agencies": agencies, "currentAgencyId": current_id}


def upsert_user_data(user_id: str, data: dict) -> UserData:
    """Insert or replace the whole document for ``user_id``.

    Last write wins: no version check against the stored ``updated_at``.
    """
    document = validate_document(data)
    row = db.session.get(UserData, user_id)
    now = datetime.now(timezone.utc)
    if row is None:
        row = UserData(user_id=user_id, data=document, updated_at=now)
        db.session.add(row)
    else:
        row.data = document
        row.updated_at = now
    db.session.commit()
    logger.debug(
        "Upserted user_data for %s (%d agencies)", user_id, len(document["agencies"]),
        extra={"user_id": user_id},
    )
    return row
