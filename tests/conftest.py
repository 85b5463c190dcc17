"""Shared fixtures: in-memory database, fake notification clients, API client."""

from __future__ import annotations

import os
import threading

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["RATE_LIMIT_ENABLED"] = "false"
for _name in ("DISCORD_TOKEN", "ANNOUNCEMENT_CHANNEL_ID", "VAPID_PRIVATE_KEY", "VAPID_PUBLIC_KEY"):
    os.environ.pop(_name, None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.security import make_tokens
from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.models.push import PushSubscription
from app.models.user import User, UserRole
from app.services.broadcast import AnnouncementBroadcaster, get_broadcaster
from app.services.notify_push import PushOutcome


class FakeChat:
    """Stands in for the Discord notifier and records every call."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple] = []

    def send_announcement(self, title, content, author_name, avatar_url=None):
        self.calls.append((title, content, author_name, avatar_url))
        if self.fail:
            raise RuntimeError("discord is down")
        return True


class FakePush:
    """Answers each send with the status configured for the endpoint.

    ``statuses`` maps endpoint -> HTTP status; 2xx means delivered, ``None``
    means a network-level failure, an exception instance is raised as-is.
    """

    def __init__(self, statuses: dict | None = None) -> None:
        self.statuses = statuses or {}
        self.sent: list[tuple[int, str, dict]] = []
        self._lock = threading.Lock()

    def send(self, subscription_id, subscription, payload):
        endpoint = subscription["endpoint"]
        with self._lock:
            self.sent.append((subscription_id, endpoint, payload))
        status = self.statuses.get(endpoint, 201)
        if isinstance(status, Exception):
            raise status
        if status is not None and 200 <= status < 300:
            return PushOutcome(subscription_id, delivered=True)
        return PushOutcome(subscription_id, delivered=False, status_code=status)


@pytest.fixture()
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


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def chat() -> FakeChat:
    return FakeChat()


@pytest.fixture()
def push() -> FakePush:
    return FakePush()


@pytest.fixture()
def client(session_factory, chat, push):
    """Return a test client wired to the in-memory database and fake notifiers."""

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_broadcaster] = lambda: AnnouncementBroadcaster(chat, push, max_workers=4)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _add_user(db, email: str, role: UserRole, name: str | None = None, **extra) -> User:
    user = User(email=email, hashed_password="x", name=name, role=role, is_active=True, **extra)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def admin(db) -> User:
    return _add_user(db, "admin@example.com", UserRole.admin, name="  Ada  ",
                     avatar_url="https://cdn.example.com/ada.png")


@pytest.fixture()
def hacker(db) -> User:
    return _add_user(db, "hacker@example.com", UserRole.hacker, name="Hal")


def auth_headers(user: User) -> dict[str, str]:
    token = make_tokens(user.email, user.role.value)["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers(admin) -> dict[str, str]:
    return auth_headers(admin)


@pytest.fixture()
def hacker_headers(hacker) -> dict[str, str]:
    return auth_headers(hacker)


@pytest.fixture()
def add_subscription(db):
    """Return a helper that stores a push subscription for ``endpoint``."""

    def _add(endpoint: str, user_id: int | None = None) -> PushSubscription:
        sub = PushSubscription(user_id=user_id, endpoint=endpoint, p256dh="p256dh-key", auth="auth-key")
        db.add(sub)
        db.commit()
        db.refresh(sub)
        return sub

    return _add
