# app/api/v1/analytical_review.py
from __future__ import annotations

import uuid
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal, require_roles
from app.db.session import get_db
from app.models.analytical_review import AnalyticalReview, AnalyticalReviewVersion
from app.policies.rbac import Principal, STAFF_ROLES
from app.schemas.analytical_review import (
    AnalyticalReviewCreateRequest,
    AnalyticalReviewEnvelope,
    AnalyticalReviewListEnvelope,
    AnalyticalReviewUpdateRequest,
    MessageResponse,
    RestoreVersionRequest,
    ReviewDecisionRequest,
    StatusUpdateRequest,
    VersionEnvelope,
    VersionListEnvelope,
)
from app.services.analytical_review_service import AnalyticalReviewService, ReviewTarget
from app.services.audit_service import AuditAction, AuditService

router = APIRouter(prefix="/analytical-review")

require_staff = require_roles(*STAFF_ROLES)


# ─────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────

def get_review_service() -> AnalyticalReviewService:
    return AnalyticalReviewService()


def _iso(dt):
    return dt.isoformat() if dt else None


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _version_resp(v: AnalyticalReviewVersion) -> dict:
    return {
        "id": str(v.id),
        "versionNumber": v.version_number,
        "data": v.data or {},
        "editedBy": v.edited_by,
        "editedAt": _iso(v.edited_at),
        "changeNote": v.change_note,
        "ipAddress": v.ip_address,
    }


def _resp(r: AnalyticalReview) -> dict:
    eng = r.engagement
    return {
        "id": str(r.id),
        "engagementId": str(r.engagement_id),
        "engagement": {
            "id": str(eng.id),
            "title": eng.title,
            "clientId": eng.client_id,
            "status": eng.status,
            "yearEndDate": _iso(eng.year_end_date),
        } if eng else None,
        "auditorId": r.auditor_id,
        "clientId": r.client_id,
        **r.working_data(),
        "status": r.status,
        "currentVersion": r.current_version,
        "versions": [_version_resp(v) for v in r.versions],
        "lastEditedBy": r.last_edited_by,
        "lastEditedAt": _iso(r.last_edited_at),
        "submittedAt": _iso(r.submitted_at),
        "submittedBy": r.submitted_by,
        "reviewedAt": _iso(r.reviewed_at),
        "reviewedBy": r.reviewed_by,
        "reviewComments": r.review_comments,
        "approvedAt": _iso(r.approved_at),
        "approvedBy": r.approved_by,
        "createdAt": _iso(r.created_at),
        "updatedAt": _iso(r.updated_at),
    }


def _audit(
    db: Session,
    request: Request,
    *,
    review_id: uuid.UUID,
    engagement_id: uuid.UUID,
    principal: Principal,
    action: str,
    details: dict,
) -> None:
    AuditService().write(
        db,
        engagement_id=engagement_id,
        review_id=review_id,
        actor_user_id=principal.user_id,
        action=action,
        request_id=getattr(request.state, "request_id", None),
        details=details,
    )


# ─────────────────────────────────────────────────────────────
# COLLECTION / LOOKUPS
# ─────────────────────────────────────────────────────────────

@router.get("", response_model=AnalyticalReviewListEnvelope)
def list_reviews(
    status: Optional[str] = Query(default=None),
    auditorId: Optional[str] = Query(default=None),
    clientId: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
    svc: AnalyticalReviewService = Depends(get_review_service),
):
    rows = svc.list_reviews(db, status=status, auditor_id=auditorId, client_id=clientId)
    return {
        "message": "Analytical reviews retrieved successfully",
        "count": len(rows),
        "data": [_resp(r) for r in rows],
    }


@router.post(
    "/engagement/{engagementId}",
    response_model=AnalyticalReviewEnvelope,
    status_code=201,
)
def create_review(
    engagementId: uuid.UUID,
    request: Request,
    body: Optional[AnalyticalReviewCreateRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
    svc: AnalyticalReviewService = Depends(get_review_service),
):
    body = body or AnalyticalReviewCreateRequest()
    review = svc.create(
        db,
        engagement_id=engagementId,
        auditor_id=principal.user_id,
        initial=body.working_fields(),
    )

    _audit(
        db,
        request,
        review_id=review.id,
        engagement_id=engagementId,
        principal=principal,
        action=AuditAction.REVIEW_CREATED,
        details={"currentVersion": review.current_version},
    )

    return {"message": "Analytical review created successfully", "data": _resp(review)}


@router.get("/auditor/{auditorId}", response_model=AnalyticalReviewListEnvelope)
def list_by_auditor(
    auditorId: str,
    status: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
    svc: AnalyticalReviewService = Depends(get_review_service),
):
    rows = svc.list_by_auditor(db, auditorId, status=status)
    return {
        "message": "Analytical reviews retrieved successfully",
        "count": len(rows),
        "data": [_resp(r) for r in rows],
    }


@router.get("/client/{clientId}", response_model=AnalyticalReviewListEnvelope)
def list_by_client(
    clientId: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: AnalyticalReviewService = Depends(get_review_service),
):
    rows = svc.list_by_client(db, clientId)
    return {
        "message": "Analytical reviews retrieved successfully",
        "count": len(rows),
        "data": [_resp(r) for r in rows],
    }


# ─────────────────────────────────────────────────────────────
# PER-REVIEW ROUTES (mounted by id and by engagement)
# ─────────────────────────────────────────────────────────────

def target_by_id(id: uuid.UUID) -> ReviewTarget:
    return ReviewTarget.by_id(id)


def target_by_engagement(engagementId: uuid.UUID) -> ReviewTarget:
    return ReviewTarget.by_engagement(engagementId)


def _mount_review_routes(path: str, resolve_target: Callable[..., ReviewTarget]) -> None:
    """
    Registers the single-review routes under `path`; `resolve_target`
    turns the path parameter into a ReviewTarget.
    """

    @router.get(path, response_model=AnalyticalReviewEnvelope)
    def get_review(
        target: ReviewTarget = Depends(resolve_target),
        db: Session = Depends(get_db),
        principal: Principal = Depends(get_current_principal),
        svc: AnalyticalReviewService = Depends(get_review_service),
    ):
        review = svc.get(db, target)
        return {"message": "Analytical review retrieved successfully", "data": _resp(review)}

    @router.put(path, response_model=AnalyticalReviewEnvelope)
    def update_review(
        body: AnalyticalReviewUpdateRequest,
        request: Request,
        target: ReviewTarget = Depends(resolve_target),
        db: Session = Depends(get_db),
        principal: Principal = Depends(require_staff),
        svc: AnalyticalReviewService = Depends(get_review_service),
    ):
        patch = body.working_fields()
        review = svc.update(
            db,
            target=target,
            actor=principal,
            patch=patch,
            change_note=body.changeNote,
            ip_address=_client_ip(request),
            expected_version=body.expectedVersion,
        )

        _audit(
            db,
            request,
            review_id=review.id,
            engagement_id=review.engagement_id,
            principal=principal,
            action=AuditAction.REVIEW_UPDATED,
            details={"fields": sorted(patch), "currentVersion": review.current_version},
        )
        return {"message": "Analytical review updated successfully", "data": _resp(review)}

    @router.delete(path, response_model=MessageResponse)
    def delete_review(
        request: Request,
        target: ReviewTarget = Depends(resolve_target),
        db: Session = Depends(get_db),
        principal: Principal = Depends(require_staff),
        svc: AnalyticalReviewService = Depends(get_review_service),
    ):
        review_id, engagement_id = svc.delete(db, target=target, actor=principal)

        _audit(
            db,
            request,
            review_id=review_id,
            engagement_id=engagement_id,
            principal=principal,
            action=AuditAction.REVIEW_DELETED,
            details={},
        )
        return {"message": "Analytical review deleted successfully"}

    # ── versions ──

    @router.get(f"{path}/versions", response_model=VersionListEnvelope)
    def list_versions(
        target: ReviewTarget = Depends(resolve_target),
        db: Session = Depends(get_db),
        principal: Principal = Depends(get_current_principal),
        svc: AnalyticalReviewService = Depends(get_review_service),
    ):
        review = svc.get(db, target)
        versions = svc.get_versions(db, target)
        return {
            "message": "Versions retrieved successfully",
            "data": {
                "currentVersion": review.current_version,
                "totalVersions": len(versions),
                "versions": [_version_resp(v) for v in versions],
            },
        }

    @router.get(f"{path}/versions/{{versionNumber}}", response_model=VersionEnvelope)
    def get_version(
        versionNumber: int,
        target: ReviewTarget = Depends(resolve_target),
        db: Session = Depends(get_db),
        principal: Principal = Depends(get_current_principal),
        svc: AnalyticalReviewService = Depends(get_review_service),
    ):
        version = svc.get_version(db, target, versionNumber)
        return {"message": "Version retrieved successfully", "data": _version_resp(version)}

    @router.post(f"{path}/versions/{{versionNumber}}/restore", response_model=AnalyticalReviewEnvelope)
    def restore_version(
        versionNumber: int,
        request: Request,
        body: Optional[RestoreVersionRequest] = None,
        target: ReviewTarget = Depends(resolve_target),
        db: Session = Depends(get_db),
        principal: Principal = Depends(require_staff),
        svc: AnalyticalReviewService = Depends(get_review_service),
    ):
        body = body or RestoreVersionRequest()
        review = svc.restore_version(
            db,
            target=target,
            version_number=versionNumber,
            actor=principal,
            change_note=body.changeNote,
            ip_address=_client_ip(request),
        )

        _audit(
            db,
            request,
            review_id=review.id,
            engagement_id=review.engagement_id,
            principal=principal,
            action=AuditAction.REVIEW_VERSION_RESTORED,
            details={"restoredVersion": versionNumber, "currentVersion": review.current_version},
        )
        return {
            "message": f"Successfully restored to version {versionNumber}",
            "data": _resp(review),
        }

    # ── workflow ──

    @router.post(f"{path}/submit", response_model=AnalyticalReviewEnvelope)
    def submit_review(
        request: Request,
        target: ReviewTarget = Depends(resolve_target),
        db: Session = Depends(get_db),
        principal: Principal = Depends(require_staff),
        svc: AnalyticalReviewService = Depends(get_review_service),
    ):
        review = svc.submit_for_review(db, target=target, actor=principal)

        _audit(
            db,
            request,
            review_id=review.id,
            engagement_id=review.engagement_id,
            principal=principal,
            action=AuditAction.REVIEW_SUBMITTED,
            details={"status": review.status},
        )
        return {"message": "Analytical review submitted for review", "data": _resp(review)}

    @router.post(f"{path}/approve", response_model=AnalyticalReviewEnvelope)
    def approve_review(
        request: Request,
        body: Optional[ReviewDecisionRequest] = None,
        target: ReviewTarget = Depends(resolve_target),
        db: Session = Depends(get_db),
        principal: Principal = Depends(require_staff),
        svc: AnalyticalReviewService = Depends(get_review_service),
    ):
        body = body or ReviewDecisionRequest()
        review = svc.approve(db, target=target, actor=principal, comments=body.comments)

        _audit(
            db,
            request,
            review_id=review.id,
            engagement_id=review.engagement_id,
            principal=principal,
            action=AuditAction.REVIEW_APPROVED,
            details={"status": review.status},
        )
        return {"message": "Analytical review approved", "data": _resp(review)}

    @router.post(f"{path}/reject", response_model=AnalyticalReviewEnvelope)
    def reject_review(
        request: Request,
        body: Optional[ReviewDecisionRequest] = None,
        target: ReviewTarget = Depends(resolve_target),
        db: Session = Depends(get_db),
        principal: Principal = Depends(require_staff),
        svc: AnalyticalReviewService = Depends(get_review_service),
    ):
        body = body or ReviewDecisionRequest()
        review = svc.reject(db, target=target, actor=principal, comments=body.comments)

        _audit(
            db,
            request,
            review_id=review.id,
            engagement_id=review.engagement_id,
            principal=principal,
            action=AuditAction.REVIEW_REJECTED,
            details={"status": review.status},
        )
        return {"message": "Analytical review rejected", "data": _resp(review)}

    @router.patch(f"{path}/status", response_model=AnalyticalReviewEnvelope)
    def update_status(
        body: StatusUpdateRequest,
        request: Request,
        target: ReviewTarget = Depends(resolve_target),
        db: Session = Depends(get_db),
        principal: Principal = Depends(require_staff),
        svc: AnalyticalReviewService = Depends(get_review_service),
    ):
        review = svc.set_status(db, target=target, actor=principal, new_status=body.status)

        _audit(
            db,
            request,
            review_id=review.id,
            engagement_id=review.engagement_id,
            principal=principal,
            action=AuditAction.REVIEW_STATUS_SET,
            details={"status": review.status},
        )
        return {"message": "Status updated successfully", "data": _resp(review)}


# engagement-keyed routes first so "/engagement/..." never reads as a review id
_mount_review_routes("/engagement/{engagementId}", target_by_engagement)
_mount_review_routes("/{id}", target_by_id)
