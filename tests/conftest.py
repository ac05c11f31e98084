"""Global test configuration for TransitFlow."""

import os

# Settings are read at import time; pin them before anything imports transitflow.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_DB", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("ADMIN_UID", "admin-uid")
os.environ.setdefault("RATE_LIMIT", "10000/minute")
os.environ["PIN_RATE_LIMIT"] = "5/minute"

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from transitflow.auth.security import create_access_token, get_password_hash
from transitflow.auth.session import SessionContext
from transitflow.db import Base, get_db
from transitflow.models.models import User, UserProfile


TEST_ENGINE = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSession = sessionmaker(bind=TEST_ENGINE, autoflush=False, autocommit=False)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
def db():
    """A fresh schema per test, shared by the test body and the app."""
    Base.metadata.create_all(bind=TEST_ENGINE)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def client(db):
    from transitflow.main import app
    from transitflow.rate_limit import limiter

    def _override_get_db():
        yield db

    # Limits are counted per client address, which every TestClient shares
    limiter.reset()
    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def make_user(db, email, display_name=None, uid=None, role=None, password="password123"):
    """Create an account; with `role`, also create its profile up front."""
    user = User(email=email, display_name=display_name, password_hash=get_password_hash(password))
    if uid:
        user.id = uid
    db.add(user)
    db.commit()
    if role:
        db.add(UserProfile(uid=user.id, email=email, display_name=display_name, role=role))
        db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db):
    return make_user(db, "admin@transitflow.io", "Bob Admin", uid="admin-uid")


@pytest.fixture
def alice(db):
    return make_user(db, "alice@transitflow.io", "Alice", uid="alice-uid")


@pytest.fixture
def charlie(db):
    return make_user(db, "charlie@transitflow.io", "Charlie", uid="charlie-uid")


@pytest.fixture
def admin_ctx(db, admin_user) -> SessionContext:
    return SessionContext.build(db, admin_user)


@pytest.fixture
def alice_ctx(db, alice) -> SessionContext:
    return SessionContext.build(db, alice)


@pytest.fixture
def charlie_ctx(db, charlie) -> SessionContext:
    return SessionContext.build(db, charlie)


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture
def alice_headers(alice):
    return auth_headers(alice)


# ---------------------------------------------------------------------------
# Freight data
# ---------------------------------------------------------------------------

@pytest.fixture
def freight(db, admin_user):
    """One client with one BL carrying expense exp-9 and container cont-1."""
    from transitflow.services import store

    client = store.clients.add(db, {"id": "client-1", "name": "Global Imports Inc.", "created_by_user_id": admin_user.id})
    bl = store.bills_of_lading.add(
        db,
        {"id": "bl-1", "bl_number": "MSCU1234567", "client_id": client.id, "allocated_amount": 1000.0},
    )
    store.expenses.add(db, {"id": "exp-9", "bl_id": bl.id, "label": "Frais de port", "amount": 250.0})
    store.containers.add(db, {"id": "cont-1", "bl_id": bl.id, "container_number": "MSKU7654321", "type": "40ft HC"})
    return SimpleNamespace(client_id="client-1", bl_id="bl-1", expense_id="exp-9", container_id="cont-1")
