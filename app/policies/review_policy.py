# app/policies/review_policy.py
from __future__ import annotations

from app.core.errors import ForbiddenError
from app.core.types import ApprovalPolicy
from app.models.analytical_review import AnalyticalReview
from app.policies.rbac import Principal


def can_mutate(principal: Principal, review: AnalyticalReview) -> bool:
    """
    Owner (the review's auditor) or admin.
    Pure: no I/O, no side effects.
    """
    return principal.user_id == review.auditor_id or principal.is_admin


def require_can_mutate(principal: Principal, review: AnalyticalReview, action: str = "modify") -> None:
    if not can_mutate(principal, review):
        raise ForbiddenError(f"You do not have permission to {action} this review.")


def can_review(principal: Principal, review: AnalyticalReview, policy: ApprovalPolicy) -> bool:
    """
    Approve / reject gate, selected by configuration.
    AUTHENTICATED keeps the historical behaviour: any caller that reached
    the route (staff role already enforced upstream) may decide.
    """
    if policy == ApprovalPolicy.AUTHENTICATED:
        return True
    if policy == ApprovalPolicy.OWNER_OR_ADMIN:
        return can_mutate(principal, review)
    if policy == ApprovalPolicy.ADMIN:
        return principal.is_admin
    return False


def require_can_review(
    principal: Principal,
    review: AnalyticalReview,
    policy: ApprovalPolicy,
    action: str = "review",
) -> None:
    if not can_review(principal, review, policy):
        raise ForbiddenError(f"You do not have permission to {action} this review.")
