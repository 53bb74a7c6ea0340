"""
Pytest fixtures for the SiteBooks API suite.

Provides:
- a fresh in-memory SQLite schema per test, shared with the app through
  a get_db override
- a TestClient for the FastAPI app
- one seeded user per role, with bearer headers
- two projects; the site manager is assigned to the first
"""
import os

os.environ["SECRET_KEY"] = "sitebooks-test-suite-secret-key-0123456789abcdef"
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sitebooks.core.database import Base, get_db, init_db
from sitebooks.core.security import create_user_token, get_password_hash
from sitebooks.core import policy
from sitebooks.main import app
from sitebooks.models import Project, User

PASSWORD = "s3cret-pass"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    """Session for seeding and for reading back state in assertions"""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def project(db):
    project = Project(name="Riverside Towers", allocated_budget=Decimal("500000.00"), balance=Decimal("0.00"))
    db.add(project)
    db.commit()
    return project


@pytest.fixture
def other_project(db):
    project = Project(name="Hillview Villas", allocated_budget=Decimal("250000.00"), balance=Decimal("0.00"))
    db.add(project)
    db.commit()
    return project


def _user(db, name, email, role, project_id=None, is_active=True):
    user = User(
        name=name,
        email=email,
        hashed_password=get_password_hash(PASSWORD),
        role=role,
        assigned_project_id=project_id,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def users(db, project):
    return {
        policy.SUPER_ADMIN: _user(db, "Sara Owner", "owner@acme-builders.com", policy.SUPER_ADMIN),
        policy.ADMIN: _user(db, "Adam Office", "office@acme-builders.com", policy.ADMIN),
        policy.SITE_MANAGER: _user(
            db, "Sam Site", "site@acme-builders.com", policy.SITE_MANAGER, project_id=project.id
        ),
    }


def _headers(user):
    return {"Authorization": f"Bearer {create_user_token(user)}"}


@pytest.fixture
def super_headers(users):
    return _headers(users[policy.SUPER_ADMIN])


@pytest.fixture
def admin_headers(users):
    return _headers(users[policy.ADMIN])


@pytest.fixture
def manager_headers(users):
    return _headers(users[policy.SITE_MANAGER])


@pytest.fixture
def headers_for():
    return _headers
