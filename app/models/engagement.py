# app/models/engagement.py
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import String, Date, DateTime, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.enums import EngagementStatus


class Engagement(Base):
    """
    Audit engagement. Owned by the engagements module; the analytical
    review core only reads it (existence check, client id, summary).
    """

    __tablename__ = "engagements"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    client_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, server_default=text(f"'{EngagementStatus.draft.value}'")
    )
    year_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    analytical_review = relationship(
        "AnalyticalReview",
        back_populates="engagement",
        uselist=False,
    )
