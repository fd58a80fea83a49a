# app/models/analytical_review.py
from __future__ import annotations

import copy
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    String,
    Text,
    DateTime,
    Integer,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, JSONType
from app.models.enums import ReviewStatus


def _utcnow():
    return datetime.now(timezone.utc)


class AnalyticalReview(Base):
    """
    Analytical review aggregate: one per engagement.

    Working data (ratios, commentary, conclusions, key findings, risk) is the
    mutable payload; every edit first appends a snapshot of the prior working
    data to `versions` and bumps `current_version`.
    """

    __tablename__ = "analytical_reviews"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    engagement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("engagements.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    # fixed at creation
    auditor_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    client_id: Mapped[str] = mapped_column(String(128), nullable=False)

    # ─────────── working data ───────────
    # ratio name -> number | string | structured record; no schema imposed
    ratios: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    commentary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    conclusions: Mapped[str] = mapped_column(Text, nullable=False, default="")
    key_findings: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    risk_assessment: Mapped[str] = mapped_column(String(16), nullable=False, default="")

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=text(f"'{ReviewStatus.draft.value}'")
    )

    current_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    last_edited_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    last_edited_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # ─────────── review workflow ───────────
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    submitted_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    review_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow, server_default=func.now()
    )

    engagement = relationship("Engagement", back_populates="analytical_review")

    versions: Mapped[List["AnalyticalReviewVersion"]] = relationship(
        "AnalyticalReviewVersion",
        back_populates="review",
        cascade="all, delete-orphan",
        order_by="AnalyticalReviewVersion.version_number",
    )

    __table_args__ = (
        CheckConstraint("current_version >= 1", name="ck_analytical_reviews_version_positive"),
        Index("ix_analytical_reviews_auditor_status", "auditor_id", "status"),
        Index("ix_analytical_reviews_status_created", "status", "created_at"),
        Index("ix_analytical_reviews_client", "client_id"),
    )

    def working_data(self) -> Dict[str, Any]:
        """
        Detached copy of the working data, in the shape stored in snapshots.
        """
        return {
            "ratios": copy.deepcopy(self.ratios or {}),
            "commentary": self.commentary or "",
            "conclusions": self.conclusions or "",
            "keyFindings": list(self.key_findings or []),
            "riskAssessment": self.risk_assessment or "",
        }


class AnalyticalReviewVersion(Base):
    """
    Immutable snapshot of a review's working data.

    version_number is the review's current_version at the moment the
    snapshot was taken, i.e. version N holds the state *before* the edit
    that produced version N+1.
    Append-only: rows are inserted by the review service and never updated.
    """

    __tablename__ = "analytical_review_versions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    review_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("analytical_reviews.id", ondelete="CASCADE"),
        nullable=False,
    )

    version_number: Mapped[int] = mapped_column(Integer, nullable=False)

    data: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    edited_by: Mapped[str] = mapped_column(String(128), nullable=False)
    edited_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    change_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    review = relationship("AnalyticalReview", back_populates="versions")

    __table_args__ = (
        # one snapshot per label; a lost race surfaces here as IntegrityError
        UniqueConstraint("review_id", "version_number", name="uq_analytical_review_versions_review_version"),
        CheckConstraint("version_number >= 1", name="ck_analytical_review_versions_positive"),
    )
