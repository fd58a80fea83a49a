import uuid

import pytest

from app.core.errors import ForbiddenError, InvalidArgumentError
from app.core.types import ApprovalPolicy
from app.services.analytical_review_service import AnalyticalReviewService, ReviewTarget


@pytest.fixture
def review(db, svc, engagement, auditor):
    return svc.create(db, engagement_id=engagement.id, auditor_id=auditor.user_id)


def test_submit_records_submitter(db, svc, review, auditor):
    review = svc.submit_for_review(db, target=ReviewTarget.by_id(review.id), actor=auditor)

    assert review.status == "submitted"
    assert review.submitted_by == "auditor-1"
    assert review.submitted_at is not None
    # status changes are not versioned
    assert review.current_version == 1
    assert review.versions == []


def test_submit_by_non_owner_forbidden(db, svc, review, other_auditor):
    with pytest.raises(ForbiddenError):
        svc.submit_for_review(db, target=ReviewTarget.by_id(review.id), actor=other_auditor)

    db.expire_all()
    assert svc.get_by_id(db, review.id).status == "draft"


def test_approve_records_decision(db, svc, review, auditor, other_auditor):
    target = ReviewTarget.by_id(review.id)
    svc.submit_for_review(db, target=target, actor=auditor)

    review = svc.approve(db, target=target, actor=other_auditor, comments="looks right")

    assert review.status == "approved"
    assert review.approved_by == "auditor-2"
    assert review.reviewed_by == "auditor-2"
    assert review.approved_at is not None
    assert review.reviewed_at is not None
    assert review.review_comments == "looks right"


def test_reject_without_comments_stores_empty(db, svc, review, auditor, admin):
    target = ReviewTarget.by_id(review.id)
    svc.submit_for_review(db, target=target, actor=auditor)

    review = svc.reject(db, target=target, actor=admin)

    assert review.status == "rejected"
    assert review.reviewed_by == "admin-1"
    assert review.review_comments == ""
    assert review.approved_at is None


def test_default_service_allows_approving_a_draft(db, svc, review, other_auditor):
    review = svc.approve(db, target=ReviewTarget.by_id(review.id), actor=other_auditor)

    assert review.status == "approved"


def test_edits_still_allowed_after_approval(db, svc, review, auditor):
    target = ReviewTarget.by_id(review.id)
    svc.approve(db, target=target, actor=auditor)

    review = svc.update(db, target=target, actor=auditor, patch={"commentary": "post approval"})

    assert review.status == "approved"
    assert review.current_version == 2


# ─────────────────────────────────────────────
# enforced transitions / owner-or-admin approval
# ─────────────────────────────────────────────

def test_strict_approve_requires_submission(db, strict_svc, review, auditor):
    with pytest.raises(InvalidArgumentError):
        strict_svc.approve(db, target=ReviewTarget.by_id(review.id), actor=auditor)

    db.expire_all()
    assert strict_svc.get_by_id(db, review.id).status == "draft"


def test_strict_submit_then_approve(db, strict_svc, review, auditor):
    target = ReviewTarget.by_id(review.id)
    strict_svc.submit_for_review(db, target=target, actor=auditor)

    review = strict_svc.approve(db, target=target, actor=auditor)

    assert review.status == "approved"


def test_strict_cannot_resubmit_approved(db, strict_svc, review, auditor):
    target = ReviewTarget.by_id(review.id)
    strict_svc.submit_for_review(db, target=target, actor=auditor)
    strict_svc.approve(db, target=target, actor=auditor)

    with pytest.raises(InvalidArgumentError):
        strict_svc.submit_for_review(db, target=target, actor=auditor)


def test_strict_rejected_review_can_be_resubmitted(db, strict_svc, review, auditor, admin):
    target = ReviewTarget.by_id(review.id)
    strict_svc.submit_for_review(db, target=target, actor=auditor)
    strict_svc.reject(db, target=target, actor=admin, comments="missing gross margin")

    review = strict_svc.submit_for_review(db, target=target, actor=auditor)

    assert review.status == "submitted"
    assert review.review_comments == "missing gross margin"


def test_owner_or_admin_policy_blocks_other_employee(db, strict_svc, review, auditor, other_auditor):
    target = ReviewTarget.by_id(review.id)
    strict_svc.submit_for_review(db, target=target, actor=auditor)

    with pytest.raises(ForbiddenError):
        strict_svc.approve(db, target=target, actor=other_auditor)
    with pytest.raises(ForbiddenError):
        strict_svc.reject(db, target=target, actor=other_auditor)

    db.expire_all()
    assert strict_svc.get_by_id(db, review.id).status == "submitted"


def test_admin_policy(db, review, auditor, admin):
    service = AnalyticalReviewService(approval_policy=ApprovalPolicy.ADMIN, enforce_transitions=False)
    target = ReviewTarget.by_id(review.id)

    with pytest.raises(ForbiddenError):
        service.approve(db, target=target, actor=auditor)

    review = service.approve(db, target=target, actor=admin)
    assert review.approved_by == "admin-1"


# ─────────────────────────────────────────────
# set_status
# ─────────────────────────────────────────────

def test_set_status_rejects_unknown_value(db, svc, review, auditor):
    with pytest.raises(InvalidArgumentError):
        svc.set_status(db, target=ReviewTarget.by_id(review.id), actor=auditor, new_status="archived")


def test_set_status_validates_before_lookup(db, svc, auditor):
    # a bad value is reported even when the review does not exist
    with pytest.raises(InvalidArgumentError):
        svc.set_status(db, target=ReviewTarget.by_id(uuid.uuid4()), actor=auditor, new_status="bogus")


def test_set_status_bypasses_transition_guard(db, strict_svc, review, auditor):
    review = strict_svc.set_status(
        db, target=ReviewTarget.by_engagement(review.engagement_id), actor=auditor, new_status="approved"
    )

    assert review.status == "approved"
    assert review.current_version == 1


def test_set_status_in_progress(db, svc, review, auditor):
    review = svc.set_status(db, target=ReviewTarget.by_id(review.id), actor=auditor, new_status="in-progress")

    assert review.status == "in-progress"


def test_set_status_by_non_owner_forbidden(db, svc, review, other_auditor):
    with pytest.raises(ForbiddenError):
        svc.set_status(db, target=ReviewTarget.by_id(review.id), actor=other_auditor, new_status="reviewed")
