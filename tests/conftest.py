import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["RATE_LIMIT"] = "10000/minute"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ENVIRONMENT"] = "test"
os.environ["PUBLIC_BASE_URL"] = "http://testserver"
os.environ["ROUTING_RETRY_DELAY_S"] = "0"

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from verdepm.auth.security import create_access_token, get_password_hash
from verdepm.db import Base, get_db
from verdepm.main import app
from verdepm.models.models import Organization, OrganizationMember, Project, User
from verdepm.storage.factory import get_storage
from verdepm.storage.local_provider import LocalStorageProvider


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storage(tmp_path):
    return LocalStorageProvider(str(tmp_path / "storage"))


@pytest.fixture
def client(session_factory, storage):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_member(db):
    """Create a user with a membership; a new organization is made unless one is given."""
    def _make(email="owner@verdepm.io", role="owner", organization=None, password="Secret123"):
        if organization is None:
            organization = Organization(organization_name="Green Build Co")
            db.add(organization)
            db.flush()
        user = User(
            email=email,
            password_hash=get_password_hash(password),
            first_name="Maria",
            last_name="Santos",
            organization_id=organization.organization_id,
        )
        db.add(user)
        db.flush()
        db.add(OrganizationMember(organization_id=organization.organization_id, user_id=user.user_id, role=role))
        db.commit()
        return user, organization

    return _make


@pytest.fixture
def make_project(db):
    def _make(organization, name="Riverside Tower", slug=None, owner=None):
        project = Project(
            project_name=name,
            slug=slug or f"{name.lower().replace(' ', '-')}-{uuid.uuid4().hex[:6]}",
            organization_id=organization.organization_id,
            owner_id=owner.user_id if owner else None,
        )
        db.add(project)
        db.commit()
        return project

    return _make


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(str(user.user_id))}"}


@pytest.fixture
def headers():
    return auth_headers
