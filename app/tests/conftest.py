import os

# Settings are read once per process; tests run against SQLite.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import uuid
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# FORCE model registration
import app.models  # noqa

from app.api.v1.analytical_review import get_review_service
from app.core.security import create_access_token
from app.core.types import ApprovalPolicy
from app.db.base import Base
from app.db.session import get_db
from app.main import create_app
from app.models.engagement import Engagement
from app.models.enums import UserRole
from app.policies.rbac import Principal
from app.services.analytical_review_service import AnalyticalReviewService


@pytest.fixture(scope="function")
def engine():
    eng = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(bind=eng)
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def engagement(db):
    eng = Engagement(
        id=uuid.uuid4(),
        client_id="client-1",
        title="FY2025 statutory audit",
        status="active",
        year_end_date=date(2025, 12, 31),
    )
    db.add(eng)
    db.commit()
    db.refresh(eng)
    return eng


@pytest.fixture
def other_engagement(db):
    eng = Engagement(
        id=uuid.uuid4(),
        client_id="client-2",
        title="FY2025 group audit",
        status="active",
    )
    db.add(eng)
    db.commit()
    db.refresh(eng)
    return eng


@pytest.fixture
def auditor():
    return Principal(user_id="auditor-1", role=UserRole.EMPLOYEE, email="a1@firm.test")


@pytest.fixture
def other_auditor():
    return Principal(user_id="auditor-2", role=UserRole.EMPLOYEE, email="a2@firm.test")


@pytest.fixture
def admin():
    return Principal(user_id="admin-1", role=UserRole.ADMIN, email="admin@firm.test")


@pytest.fixture
def svc():
    return AnalyticalReviewService(
        approval_policy=ApprovalPolicy.AUTHENTICATED,
        enforce_transitions=False,
    )


@pytest.fixture
def strict_svc():
    return AnalyticalReviewService(
        approval_policy=ApprovalPolicy.OWNER_OR_ADMIN,
        enforce_transitions=True,
    )


@pytest.fixture
def client(session_factory):
    app = create_app()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_review_service] = lambda: AnalyticalReviewService(
        approval_policy=ApprovalPolicy.AUTHENTICATED,
        enforce_transitions=False,
    )
    return TestClient(app)


def auth_headers(user_id: str, role: UserRole) -> dict:
    token = create_access_token(user_id, {"role": role.value, "email": f"{user_id}@firm.test"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auditor_headers():
    return auth_headers("auditor-1", UserRole.EMPLOYEE)


@pytest.fixture
def other_headers():
    return auth_headers("auditor-2", UserRole.EMPLOYEE)


@pytest.fixture
def admin_headers():
    return auth_headers("admin-1", UserRole.ADMIN)


@pytest.fixture
def client_headers():
    return auth_headers("client-1", UserRole.CLIENT)
