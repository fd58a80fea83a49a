from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.types import ApprovalPolicy


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Audit Portal"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api"
    request_id_header: str = "X-Request-Id"

    # ─────────── DATABASE ───────────
    database_url: str

    # ─────────── JWT / AUTH ───────────
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_access_token_minutes: int = 1440  # 24 hours

    # ─────────── ANALYTICAL REVIEW WORKFLOW ───────────
    # who may approve / reject a submitted review
    review_approval_policy: ApprovalPolicy = ApprovalPolicy.AUTHENTICATED
    # when off, submit/approve/reject are accepted from any status
    review_enforce_transitions: bool = False


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
