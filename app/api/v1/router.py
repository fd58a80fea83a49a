from fastapi import APIRouter

from app.api.v1.health import router as health_router
from app.api.v1.analytical_review import router as analytical_review_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM / CORE
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])

# ------------------------------------------------------------------
# ENGAGEMENT WORKPAPERS
# ------------------------------------------------------------------
v1_router.include_router(analytical_review_router, tags=["analytical-review"])
