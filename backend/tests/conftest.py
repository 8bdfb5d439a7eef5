"""Pytest configuration and fixtures for the logistics backend tests.

Every test runs against a fresh in-memory SQLite database; the mail relay is
replaced by a recording notifier.
"""

import json
import os

# Must be set before the application modules build their engine
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import date, timedelta
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from database import Base, SessionLocal, engine
from main import app
from models.users import User
from utils.mailer import NotificationResult, get_notifier
from utils.permissions import Actor, build_actor
from utils.tokenJWT import create_access_token


# ── Test Database Setup ──────────────────────────────────────────

@pytest.fixture(autouse=True)
def reset_schema() -> Generator[None, None, None]:
    """Recreate all tables around every test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


# ── Notifications ────────────────────────────────────────────────

class RecordingNotifier:
    """Collects notifications instead of sending them."""

    def __init__(self):
        self.sent = []

    def notify(self, kind, context):
        self.sent.append((kind, context))
        return NotificationResult(success=True, message="recorded", recipient_info="test@example.com")


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def client(notifier: RecordingNotifier) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

def _make_user(db: Session, email: str, name: str, role: str, is_admin=None, permissions=None) -> User:
    user = User(
        email=email,
        name=name,
        role=role,
        is_admin=is_admin,
        permissions=json.dumps(permissions) if permissions is not None else None,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db: Session) -> User:
    return _make_user(db, "admin@grupaeltron.pl", "Administrator", "admin", is_admin="1")


@pytest.fixture
def warehouse_user(db: Session) -> User:
    return _make_user(db, "magazyn@grupaeltron.pl", "Magazyn Białystok", "magazyn_bialystok")


@pytest.fixture
def sales_user(db: Session) -> User:
    return _make_user(db, "handlowiec@grupaeltron.pl", "Jan Kowalski", "handlowiec")


@pytest.fixture
def other_sales_user(db: Session) -> User:
    return _make_user(db, "handlowiec2@grupaeltron.pl", "Anna Nowak", "handlowiec")


@pytest.fixture
def admin(admin_user: User) -> Actor:
    return build_actor(admin_user)


@pytest.fixture
def warehouse(warehouse_user: User) -> Actor:
    return build_actor(warehouse_user)


@pytest.fixture
def sales(sales_user: User) -> Actor:
    return build_actor(sales_user)


@pytest.fixture
def other_sales(other_sales_user: User) -> Actor:
    return build_actor(other_sales_user)


def auth_headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': user.email})}"}


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return auth_headers_for(admin_user)


@pytest.fixture
def warehouse_headers(warehouse_user: User) -> dict:
    return auth_headers_for(warehouse_user)


@pytest.fixture
def sales_headers(sales_user: User) -> dict:
    return auth_headers_for(sales_user)


@pytest.fixture
def tomorrow() -> date:
    return date.today() + timedelta(days=1)
