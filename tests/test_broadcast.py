"""Unit tests for the announcement fan-out."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from app.models.announcement import Announcement
from app.models.push import PushSubscription
from app.models.user import User, UserRole
from app.services.broadcast import AnnouncementBroadcaster, AuthorSnapshot

from conftest import FakeChat, FakePush


@pytest.fixture()
def announcement(db, admin) -> Announcement:
    row = Announcement(title="Kickoff", content="Event starts now", author_id=admin.id)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _remaining(db) -> set[str]:
    db.expire_all()
    return {s.endpoint for s in db.query(PushSubscription).all()}


@pytest.mark.parametrize(
    ("status", "pruned"),
    [
        (400, True),
        (404, True),
        (410, True),
        (401, False),
        (403, False),
        (413, False),
        (429, False),
        (500, False),
        (503, False),
        (None, False),
    ],
)
def test_only_terminal_statuses_are_pruned(db, announcement, add_subscription, status, pruned) -> None:
    """Dead endpoints are deleted; transient failures leave the row alone."""

    sub_id = add_subscription("https://push.example.com/target").id
    push = FakePush({"https://push.example.com/target": status})

    report = AnnouncementBroadcaster(FakeChat(), push).broadcast(db, announcement)

    assert report.attempted == 1
    assert report.delivered == 0
    assert (report.pruned_ids == [sub_id]) is pruned
    assert (_remaining(db) == set()) is pruned


def test_every_subscription_is_attempted_once(db, announcement, add_subscription) -> None:
    endpoints = [f"https://push.example.com/{i}" for i in range(12)]
    for endpoint in endpoints:
        add_subscription(endpoint)
    push = FakePush({endpoints[0]: 410, endpoints[1]: RuntimeError("boom"), endpoints[2]: 500})

    report = AnnouncementBroadcaster(FakeChat(), push, max_workers=3).broadcast(db, announcement)

    assert sorted(endpoint for _, endpoint, _ in push.sent) == sorted(endpoints)
    assert report.attempted == 12
    assert report.delivered == 9
    assert _remaining(db) == set(endpoints[1:])


def test_no_subscriptions_still_notifies_chat(db, announcement) -> None:
    chat = FakeChat()

    report = AnnouncementBroadcaster(chat, FakePush()).broadcast(db, announcement)

    assert report.chat_sent is True
    assert report.attempted == 0
    assert report.pruned_ids == []
    assert len(chat.calls) == 1


def test_chat_exception_is_swallowed(db, announcement, add_subscription) -> None:
    add_subscription("https://push.example.com/a")
    push = FakePush()

    report = AnnouncementBroadcaster(FakeChat(fail=True), push).broadcast(db, announcement)

    assert report.chat_sent is False
    assert report.delivered == 1


def test_prune_failure_is_logged_and_ignored(db, announcement, add_subscription, monkeypatch, caplog) -> None:
    add_subscription("https://push.example.com/gone")
    push = FakePush({"https://push.example.com/gone": 404})

    def _fail_commit():
        raise OperationalError("DELETE", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", _fail_commit)

    report = AnnouncementBroadcaster(FakeChat(), push).broadcast(db, announcement)

    assert report.pruned_ids == []
    assert "Error removing invalid subscriptions" in caplog.text
    monkeypatch.undo()
    assert _remaining(db) == {"https://push.example.com/gone"}


def test_author_snapshot_defaults_and_trims() -> None:
    assert AuthorSnapshot.from_user(None) == AuthorSnapshot(name="Unknown")
    assert AuthorSnapshot.from_user(User(email="a@example.com", name=None, role=UserRole.admin)).name == "Unknown"
    snapshot = AuthorSnapshot.from_user(
        User(email="b@example.com", name="  Grace ", avatar_url="https://img/g.png", role=UserRole.admin)
    )
    assert snapshot == AuthorSnapshot(name="Grace", avatar_url="https://img/g.png")


def test_missing_author_falls_back_to_unknown(db, add_subscription) -> None:
    row = Announcement(title="Orphan", content="No author row", author_id=424242)
    add_subscription("https://push.example.com/a")
    chat, push = FakeChat(), FakePush()

    AnnouncementBroadcaster(chat, push).broadcast(db, row)

    assert chat.calls == [("Orphan", "No author row", "Unknown", None)]
    assert push.sent[0][2]["author"] == "Unknown"
