# Import every model so Base.metadata is complete (alembic, tests).
from app.models.engagement import Engagement  # noqa: F401
from app.models.analytical_review import AnalyticalReview, AnalyticalReviewVersion  # noqa: F401
from app.models.audit_log import AuditLog  # noqa: F401
