#app/models/enums.py
from __future__ import annotations
from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    EMPLOYEE = "employee"
    CLIENT = "client"


class ReviewStatus(str, Enum):
    draft = "draft"
    in_progress = "in-progress"
    submitted = "submitted"
    reviewed = "reviewed"
    approved = "approved"
    rejected = "rejected"


class RiskAssessment(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"
    unset = ""


class EngagementStatus(str, Enum):
    draft = "draft"
    active = "active"
    completed = "completed"


STATUS_VALUES = frozenset(s.value for s in ReviewStatus)
RISK_VALUES = frozenset(r.value for r in RiskAssessment)
