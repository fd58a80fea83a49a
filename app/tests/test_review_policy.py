import pytest

from app.core.errors import ForbiddenError
from app.core.types import ApprovalPolicy
from app.models.analytical_review import AnalyticalReview
from app.models.enums import UserRole
from app.policies.rbac import Principal
from app.policies.review_policy import (
    can_mutate,
    can_review,
    require_can_mutate,
    require_can_review,
)


def _review(auditor_id="auditor-1"):
    return AnalyticalReview(auditor_id=auditor_id, client_id="client-1")


def test_owner_can_mutate():
    p = Principal(user_id="auditor-1", role=UserRole.EMPLOYEE)
    assert can_mutate(p, _review()) is True


def test_admin_can_mutate_any_review():
    p = Principal(user_id="someone-else", role=UserRole.ADMIN)
    assert can_mutate(p, _review()) is True


def test_other_employee_cannot_mutate():
    p = Principal(user_id="auditor-2", role=UserRole.EMPLOYEE)
    assert can_mutate(p, _review()) is False

    with pytest.raises(ForbiddenError):
        require_can_mutate(p, _review(), "edit")


def test_client_role_is_not_owner_even_with_matching_role_name():
    p = Principal(user_id="client-1", role=UserRole.CLIENT)
    assert can_mutate(p, _review()) is False


@pytest.mark.parametrize(
    "policy,user_id,role,expected",
    [
        (ApprovalPolicy.AUTHENTICATED, "auditor-2", UserRole.EMPLOYEE, True),
        (ApprovalPolicy.AUTHENTICATED, "auditor-1", UserRole.EMPLOYEE, True),
        (ApprovalPolicy.OWNER_OR_ADMIN, "auditor-2", UserRole.EMPLOYEE, False),
        (ApprovalPolicy.OWNER_OR_ADMIN, "auditor-1", UserRole.EMPLOYEE, True),
        (ApprovalPolicy.OWNER_OR_ADMIN, "admin-1", UserRole.ADMIN, True),
        (ApprovalPolicy.ADMIN, "auditor-1", UserRole.EMPLOYEE, False),
        (ApprovalPolicy.ADMIN, "admin-1", UserRole.ADMIN, True),
    ],
)
def test_can_review_follows_configured_policy(policy, user_id, role, expected):
    p = Principal(user_id=user_id, role=role)
    assert can_review(p, _review(), policy) is expected


def test_require_can_review_raises_forbidden():
    p = Principal(user_id="auditor-1", role=UserRole.EMPLOYEE)
    with pytest.raises(ForbiddenError):
        require_can_review(p, _review(), ApprovalPolicy.ADMIN, "approve")
