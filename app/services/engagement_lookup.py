# app/services/engagement_lookup.py
from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.engagement import Engagement


class EngagementLookup:
    """
    Read-only view of the engagements collection used by the review core.
    """

    def get(self, db: Session, engagement_id: uuid.UUID) -> Optional[Engagement]:
        return db.execute(
            select(Engagement).where(Engagement.id == engagement_id)
        ).scalar_one_or_none()

    def exists(self, db: Session, engagement_id: uuid.UUID) -> bool:
        return db.execute(
            select(Engagement.id).where(Engagement.id == engagement_id)
        ).first() is not None
