from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.audit_log import AuditLog


class AuditAction:
    REVIEW_CREATED = "REVIEW_CREATED"
    REVIEW_UPDATED = "REVIEW_UPDATED"
    REVIEW_DELETED = "REVIEW_DELETED"
    REVIEW_VERSION_RESTORED = "REVIEW_VERSION_RESTORED"

    # workflow
    REVIEW_SUBMITTED = "REVIEW_SUBMITTED"
    REVIEW_APPROVED = "REVIEW_APPROVED"
    REVIEW_REJECTED = "REVIEW_REJECTED"
    REVIEW_STATUS_SET = "REVIEW_STATUS_SET"


class AuditService:
    def write(
        self,
        db: Session,
        *,
        engagement_id: Optional[uuid.UUID],
        review_id: Optional[uuid.UUID],
        actor_user_id: Optional[str],
        action: str,
        request_id: Optional[str],
        details: Dict[str, Any],
    ) -> None:
        row = AuditLog(
            engagement_id=engagement_id,
            review_id=review_id,
            actor_user_id=actor_user_id,
            action=action,
            request_id=request_id,
            details_json=details,
        )
        db.add(row)
        db.commit()

    def for_review(self, db: Session, review_id: uuid.UUID) -> List[AuditLog]:
        return list(
            db.execute(
                select(AuditLog)
                .where(AuditLog.review_id == review_id)
                .order_by(AuditLog.created_at.asc())
            ).scalars().all()
        )
