from enum import Enum


class ApprovalPolicy(str, Enum):
    # any authenticated employee/admin
    AUTHENTICATED = "authenticated"
    # same gate as every other mutation
    OWNER_OR_ADMIN = "owner_or_admin"
    ADMIN = "admin"
