"""Pytest fixtures for propdesk.

Each test gets its own SQLite file database with every model table created.
The FastAPI app is wired to it through dependency overrides.
"""

import os

import pytest

# Set testing environment before any app imports
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["AUTO_CREATE_DB"] = "false"
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only")
os.environ["RATE_LIMIT"] = "10000/minute"

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from propdesk.auth.security import create_access_token  # noqa: E402
from propdesk.db import Base, get_db, get_session_factory  # noqa: E402
from propdesk.main import app as fastapi_app  # noqa: E402
from propdesk.models.models import Organization, Profile, UserRole  # noqa: E402
from propdesk.services.tenant_backend import TenantBackendService  # noqa: E402


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(
        f"sqlite:///{tmp_path / 'propdesk-test.db'}",
        future=True,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def app(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = _get_db
    fastapi_app.dependency_overrides[get_session_factory] = lambda: session_factory
    previous_backend = fastapi_app.state.tenant_backend
    fastapi_app.state.tenant_backend = TenantBackendService(session_factory)
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()
    fastapi_app.state.tenant_backend = previous_backend


@pytest.fixture
def client(app):
    return TestClient(app)


def _make_identity(db, email, role, organization_id=None):
    profile = Profile(email=email, full_name=email.split("@")[0], organization_id=organization_id)
    db.add(profile)
    db.flush()
    if role:
        db.add(UserRole(user_id=profile.id, role=role))
    db.commit()
    token = create_access_token(profile.id, roles=[role] if role else [])
    return {"id": profile.id, "token": token, "headers": {"Authorization": f"Bearer {token}"}}


@pytest.fixture
def organization(db):
    org = Organization(name="Acme Rentals")
    db.add(org)
    db.commit()
    return org


@pytest.fixture
def super_admin(db):
    return _make_identity(db, "root@example.com", "super_admin")


@pytest.fixture
def manager(db, organization):
    return _make_identity(db, "manager@example.com", "manager", organization.id)
