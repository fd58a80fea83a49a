# app/services/analytical_review_service.py
from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import ConflictError, InvalidArgumentError, NotFoundError
from app.core.types import ApprovalPolicy
from app.models.analytical_review import AnalyticalReview, AnalyticalReviewVersion
from app.models.enums import ReviewStatus, RISK_VALUES, STATUS_VALUES
from app.policies.rbac import Principal
from app.policies.review_policy import require_can_mutate, require_can_review
from app.services.engagement_lookup import EngagementLookup

logger = logging.getLogger(__name__)


# snapshot / patch key -> column
WORKING_FIELDS: Dict[str, str] = {
    "ratios": "ratios",
    "commentary": "commentary",
    "conclusions": "conclusions",
    "keyFindings": "key_findings",
    "riskAssessment": "risk_assessment",
}

EMPTY_WORKING_DATA: Dict[str, Any] = {
    "ratios": {},
    "commentary": "",
    "conclusions": "",
    "keyFindings": [],
    "riskAssessment": "",
}

# transition guards, only consulted when enforce_transitions is on
SUBMITTABLE_FROM = frozenset(
    {ReviewStatus.draft.value, ReviewStatus.in_progress.value, ReviewStatus.rejected.value}
)
REVIEWABLE_FROM = frozenset({ReviewStatus.submitted.value, ReviewStatus.reviewed.value})

DEFAULT_UPDATE_NOTE = "Updated analytical review"


def _now():
    return datetime.now(timezone.utc)


def _check_ratio_value(name: str, value: Any) -> None:
    # number | string | structured record
    if isinstance(value, bool):
        raise InvalidArgumentError(f"Ratio '{name}' must be a number, string or object.")
    if not isinstance(value, (int, float, str, dict)):
        raise InvalidArgumentError(f"Ratio '{name}' must be a number, string or object.")


def coerce_working_data(values: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate working-data fields (snapshot/patch vocabulary) and map them to
    column values. Only the keys present in `values` are returned; an
    explicit None resets the field to its empty value.
    """
    unknown = set(values) - set(WORKING_FIELDS)
    if unknown:
        raise InvalidArgumentError(f"Unknown working data fields: {sorted(unknown)}")

    out: Dict[str, Any] = {}
    for key, raw in values.items():
        value = copy.deepcopy(EMPTY_WORKING_DATA[key] if raw is None else raw)

        if key == "ratios":
            if not isinstance(value, dict):
                raise InvalidArgumentError("ratios must be an object keyed by ratio name.")
            for name, ratio in value.items():
                if not isinstance(name, str):
                    raise InvalidArgumentError("Ratio names must be strings.")
                _check_ratio_value(name, ratio)
        elif key in ("commentary", "conclusions"):
            if not isinstance(value, str):
                raise InvalidArgumentError(f"{key} must be a string.")
        elif key == "keyFindings":
            if not isinstance(value, list) or not all(isinstance(f, str) for f in value):
                raise InvalidArgumentError("keyFindings must be a list of strings.")
        elif key == "riskAssessment":
            if value not in RISK_VALUES:
                raise InvalidArgumentError(
                    f"riskAssessment must be one of {sorted(v for v in RISK_VALUES if v)} or empty."
                )

        out[WORKING_FIELDS[key]] = value
    return out


@dataclass(frozen=True)
class ReviewTarget:
    """
    A review addressed either by its own id or by its engagement.
    Exactly one key is set.
    """

    review_id: Optional[uuid.UUID] = None
    engagement_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        if (self.review_id is None) == (self.engagement_id is None):
            raise InvalidArgumentError("Target must name exactly one of review id or engagement id.")

    @classmethod
    def by_id(cls, review_id: uuid.UUID) -> "ReviewTarget":
        return cls(review_id=review_id)

    @classmethod
    def by_engagement(cls, engagement_id: uuid.UUID) -> "ReviewTarget":
        return cls(engagement_id=engagement_id)

    def criteria(self):
        if self.engagement_id is not None:
            return AnalyticalReview.engagement_id == self.engagement_id
        return AnalyticalReview.id == self.review_id


class AnalyticalReviewService:
    """
    Analytical review aggregate: working data, embedded version history and
    the submit / approve / reject workflow.

    Every edit (update, restore) is one transaction that
    - snapshots the current working data labelled with current_version,
    - bumps current_version by exactly one (compare-and-swap),
    - applies the new working data.
    A writer that loses the compare-and-swap gets ConflictError and nothing
    is persisted.
    """

    def __init__(
        self,
        *,
        engagements: Optional[EngagementLookup] = None,
        approval_policy: Optional[ApprovalPolicy] = None,
        enforce_transitions: Optional[bool] = None,
    ):
        self.engagements = engagements or EngagementLookup()

        if approval_policy is None or enforce_transitions is None:
            settings = get_settings()
            if approval_policy is None:
                approval_policy = settings.review_approval_policy
            if enforce_transitions is None:
                enforce_transitions = settings.review_enforce_transitions

        self.approval_policy = ApprovalPolicy(approval_policy)
        self.enforce_transitions = bool(enforce_transitions)

    # ---------------------------
    # READS
    # ---------------------------

    def get(self, db: Session, target: ReviewTarget) -> AnalyticalReview:
        review = db.execute(
            select(AnalyticalReview).where(target.criteria())
        ).scalar_one_or_none()
        if not review:
            if target.engagement_id is not None:
                raise NotFoundError("Analytical review not found for this engagement.")
            raise NotFoundError("Analytical review not found.")
        return review

    def get_by_id(self, db: Session, review_id: uuid.UUID) -> AnalyticalReview:
        return self.get(db, ReviewTarget.by_id(review_id))

    def get_by_engagement(self, db: Session, engagement_id: uuid.UUID) -> AnalyticalReview:
        return self.get(db, ReviewTarget.by_engagement(engagement_id))

    def get_versions(self, db: Session, target: ReviewTarget) -> List[AnalyticalReviewVersion]:
        """
        Snapshots of the review, newest (highest version_number) first.
        """
        review = self.get(db, target)
        return list(
            db.execute(
                select(AnalyticalReviewVersion)
                .where(AnalyticalReviewVersion.review_id == review.id)
                .order_by(AnalyticalReviewVersion.version_number.desc())
            ).scalars().all()
        )

    def get_version(
        self, db: Session, target: ReviewTarget, version_number: int
    ) -> AnalyticalReviewVersion:
        review = self.get(db, target)
        return self._find_version(db, review, version_number)

    def list_reviews(
        self,
        db: Session,
        *,
        status: Optional[str] = None,
        auditor_id: Optional[str] = None,
        client_id: Optional[str] = None,
    ) -> List[AnalyticalReview]:
        stmt = select(AnalyticalReview)
        if status:
            if status not in STATUS_VALUES:
                raise InvalidArgumentError("Invalid status value.")
            stmt = stmt.where(AnalyticalReview.status == status)
        if auditor_id:
            stmt = stmt.where(AnalyticalReview.auditor_id == auditor_id)
        if client_id:
            stmt = stmt.where(AnalyticalReview.client_id == client_id)

        stmt = stmt.order_by(AnalyticalReview.updated_at.desc())
        return list(db.execute(stmt).scalars().all())

    def list_by_auditor(
        self, db: Session, auditor_id: str, status: Optional[str] = None
    ) -> List[AnalyticalReview]:
        return self.list_reviews(db, auditor_id=auditor_id, status=status)

    def list_by_client(self, db: Session, client_id: str) -> List[AnalyticalReview]:
        return self.list_reviews(db, client_id=client_id)

    # ---------------------------
    # CREATE / DELETE
    # ---------------------------

    def create(
        self,
        db: Session,
        *,
        engagement_id: uuid.UUID,
        auditor_id: str,
        client_id: Optional[str] = None,
        initial: Optional[Mapping[str, Any]] = None,
    ) -> AnalyticalReview:
        """
        Rules:
        - engagement must exist
        - at most one review per engagement (Conflict carries the existing id)
        - missing working data fields start empty; status draft; version 1
        """
        if not self.engagements.exists(db, engagement_id):
            raise NotFoundError("Engagement not found.")

        existing_id = self._existing_review_id(db, engagement_id)
        if existing_id is not None:
            raise ConflictError(
                "Analytical review already exists for this engagement.",
                existing_id=existing_id,
            )

        data = dict(EMPTY_WORKING_DATA)
        data.update(initial or {})
        fields = coerce_working_data(data)

        if client_id is None:
            client_id = self.engagements.get(db, engagement_id).client_id

        now = _now()
        review = AnalyticalReview(
            engagement_id=engagement_id,
            auditor_id=auditor_id,
            client_id=client_id,
            status=ReviewStatus.draft.value,
            current_version=1,
            last_edited_by=auditor_id,
            last_edited_at=now,
            **fields,
        )
        db.add(review)
        try:
            db.commit()
        except IntegrityError:
            # lost a race against a concurrent create for the same engagement
            db.rollback()
            raise ConflictError(
                "Analytical review already exists for this engagement.",
                existing_id=self._existing_review_id(db, engagement_id),
            )
        db.refresh(review)

        logger.info(
            "analytical review created",
            extra={"review_id": str(review.id), "engagement_id": str(engagement_id), "actor": auditor_id},
        )
        return review

    def delete(
        self, db: Session, *, target: ReviewTarget, actor: Principal
    ) -> Tuple[uuid.UUID, uuid.UUID]:
        """
        Removes the review and its whole version history in one commit.
        Returns (review_id, engagement_id) of the removed review.
        """
        review = self.get(db, target)
        require_can_mutate(actor, review, "delete")
        review_id, engagement_id = review.id, review.engagement_id

        db.delete(review)
        db.commit()

        logger.info(
            "analytical review deleted",
            extra={"review_id": str(review_id), "actor": actor.user_id},
        )
        return review_id, engagement_id

    # ---------------------------
    # VERSIONED EDITS
    # ---------------------------

    def update(
        self,
        db: Session,
        *,
        target: ReviewTarget,
        actor: Principal,
        patch: Mapping[str, Any],
        change_note: Optional[str] = None,
        ip_address: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> AnalyticalReview:
        """
        Partial update: only keys present in `patch` change.
        The pre-update working data is kept as version `current_version`.
        """
        review = self.get(db, target)
        require_can_mutate(actor, review, "edit")

        changes = coerce_working_data(patch)

        return self._snapshot_and_apply(
            db,
            review=review,
            actor=actor,
            changes=changes,
            change_note=change_note or DEFAULT_UPDATE_NOTE,
            ip_address=ip_address,
            expected_version=expected_version,
        )

    def restore_version(
        self,
        db: Session,
        *,
        target: ReviewTarget,
        version_number: int,
        actor: Principal,
        change_note: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> AnalyticalReview:
        """
        Restoring is itself an edit: the current state is snapshotted and the
        version counter advances; history is never rewound.
        """
        review = self.get(db, target)
        require_can_mutate(actor, review, "restore")

        version = self._find_version(db, review, version_number)

        restored = dict(EMPTY_WORKING_DATA)
        restored.update(version.data or {})
        changes = coerce_working_data(restored)

        review = self._snapshot_and_apply(
            db,
            review=review,
            actor=actor,
            changes=changes,
            change_note=change_note or f"Restored to version {version_number}",
            ip_address=ip_address,
        )
        logger.info(
            "analytical review restored",
            extra={
                "review_id": str(review.id),
                "restored_version": version_number,
                "current_version": review.current_version,
                "actor": actor.user_id,
            },
        )
        return review

    # ---------------------------
    # WORKFLOW
    # ---------------------------

    def submit_for_review(self, db: Session, *, target: ReviewTarget, actor: Principal) -> AnalyticalReview:
        review = self.get(db, target)
        require_can_mutate(actor, review, "submit")
        self._guard_transition(review, SUBMITTABLE_FROM, "submit")

        review.status = ReviewStatus.submitted.value
        review.submitted_at = _now()
        review.submitted_by = actor.user_id
        return self._commit_status(db, review, actor)

    def approve(
        self,
        db: Session,
        *,
        target: ReviewTarget,
        actor: Principal,
        comments: Optional[str] = None,
    ) -> AnalyticalReview:
        review = self.get(db, target)
        require_can_review(actor, review, self.approval_policy, "approve")
        self._guard_transition(review, REVIEWABLE_FROM, "approve")

        now = _now()
        review.status = ReviewStatus.approved.value
        review.approved_at = now
        review.approved_by = actor.user_id
        review.reviewed_at = now
        review.reviewed_by = actor.user_id
        review.review_comments = comments or ""
        return self._commit_status(db, review, actor)

    def reject(
        self,
        db: Session,
        *,
        target: ReviewTarget,
        actor: Principal,
        comments: Optional[str] = None,
    ) -> AnalyticalReview:
        review = self.get(db, target)
        require_can_review(actor, review, self.approval_policy, "reject")
        self._guard_transition(review, REVIEWABLE_FROM, "reject")

        review.status = ReviewStatus.rejected.value
        review.reviewed_at = _now()
        review.reviewed_by = actor.user_id
        review.review_comments = comments or ""
        return self._commit_status(db, review, actor)

    def set_status(
        self,
        db: Session,
        *,
        target: ReviewTarget,
        actor: Principal,
        new_status: str,
    ) -> AnalyticalReview:
        """
        Direct override; bypasses the transition guards on purpose.
        Not for untrusted callers.
        """
        if new_status not in STATUS_VALUES:
            raise InvalidArgumentError("Invalid status value.")

        review = self.get(db, target)
        require_can_mutate(actor, review, "update status of")

        review.status = new_status
        return self._commit_status(db, review, actor)

    # ---------------------------
    # INTERNALS
    # ---------------------------

    def _existing_review_id(self, db: Session, engagement_id: uuid.UUID) -> Optional[uuid.UUID]:
        return db.execute(
            select(AnalyticalReview.id).where(AnalyticalReview.engagement_id == engagement_id)
        ).scalar_one_or_none()

    def _find_version(
        self, db: Session, review: AnalyticalReview, version_number: int
    ) -> AnalyticalReviewVersion:
        version = db.execute(
            select(AnalyticalReviewVersion).where(
                AnalyticalReviewVersion.review_id == review.id,
                AnalyticalReviewVersion.version_number == version_number,
            )
        ).scalar_one_or_none()
        if not version:
            raise NotFoundError(f"Version {version_number} not found.")
        return version

    def _guard_transition(self, review: AnalyticalReview, allowed_from: frozenset, verb: str) -> None:
        if not self.enforce_transitions:
            return
        if review.status not in allowed_from:
            raise InvalidArgumentError(
                f"Cannot {verb} a review in status '{review.status}'."
            )

    def _commit_status(self, db: Session, review: AnalyticalReview, actor: Principal) -> AnalyticalReview:
        db.commit()
        db.refresh(review)
        logger.info(
            "analytical review status changed",
            extra={"review_id": str(review.id), "status": review.status, "actor": actor.user_id},
        )
        return review

    def _snapshot_and_apply(
        self,
        db: Session,
        *,
        review: AnalyticalReview,
        actor: Principal,
        changes: Dict[str, Any],
        change_note: str,
        ip_address: Optional[str],
        expected_version: Optional[int] = None,
    ) -> AnalyticalReview:
        current = review.current_version
        if expected_version is not None and expected_version != current:
            raise ConflictError(
                f"Review is at version {current}, not {expected_version}; reload and retry."
            )

        snapshot = review.working_data()
        now = _now()

        values = dict(changes)
        values.update(
            current_version=current + 1,
            last_edited_by=actor.user_id,
            last_edited_at=now,
        )

        try:
            # compare-and-swap on current_version
            result = db.execute(
                update(AnalyticalReview)
                .where(
                    AnalyticalReview.id == review.id,
                    AnalyticalReview.current_version == current,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            swapped = result.rowcount == 1
            if swapped:
                db.add(
                    AnalyticalReviewVersion(
                        review_id=review.id,
                        version_number=current,
                        data=snapshot,
                        edited_by=actor.user_id,
                        edited_at=now,
                        change_note=change_note,
                        ip_address=ip_address,
                    )
                )
                db.flush()
        except IntegrityError:
            db.rollback()
            logger.warning(
                "duplicate analytical review version",
                extra={"review_id": str(review.id), "version": current, "actor": actor.user_id},
            )
            raise ConflictError("Review was modified concurrently; reload and retry.")

        if not swapped:
            db.rollback()
            logger.warning(
                "analytical review version conflict",
                extra={"review_id": str(review.id), "expected_version": current, "actor": actor.user_id},
            )
            raise ConflictError("Review was modified concurrently; reload and retry.")

        db.commit()
        db.refresh(review)

        logger.info(
            "analytical review updated",
            extra={
                "review_id": str(review.id),
                "snapshot_version": current,
                "current_version": review.current_version,
                "actor": actor.user_id,
            },
        )
        return review
