from app.schemas.analytical_review import (  # noqa: F401
    AnalyticalReviewCreateRequest,
    AnalyticalReviewUpdateRequest,
    AnalyticalReviewOut,
    RestoreVersionRequest,
    ReviewDecisionRequest,
    StatusUpdateRequest,
    VersionOut,
)
