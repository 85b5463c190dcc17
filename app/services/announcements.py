# app/services/announcements.py
"""Announcement persistence: the write and delete paths used by the admin API."""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.announcement import Announcement
from app.models.push import PushSubscription

log = logging.getLogger(__name__)


class AnnouncementError(Exception):
    pass


class ValidationError(AnnouncementError):
    pass


class NotFoundError(AnnouncementError):
    pass


def _blank(value) -> bool:
    return not isinstance(value, str) or not value.strip()


def create_announcement(db: Session, title: str | None, content: str | None, author_id: int) -> Announcement:
    if _blank(title) or _blank(content):
        raise ValidationError("Title and content are required")

    row = Announcement(title=title, content=content, author_id=author_id)
    db.add(row)
    db.commit()
    db.refresh(row)
    log.info("Announcement %s created by user %s", row.id, author_id)
    return row


def delete_announcement(db: Session, announcement_id: int) -> dict:
    """Delete one announcement and return a plain snapshot of the removed row.

    Raises ``NotFoundError`` when no row matches; the store is left untouched.
    """
    row = db.get(Announcement, announcement_id)
    if row is None:
        raise NotFoundError("Announcement not found")

    snapshot = {
        "id": row.id,
        "title": row.title,
        "content": row.content,
        "author_id": row.author_id,
        "created_at": row.created_at,
    }
    db.delete(row)
    db.commit()
    log.info("Announcement %s deleted", announcement_id)
    return snapshot


def list_announcements(db: Session, limit: int = 50) -> list[Announcement]:
    return (
        db.query(Announcement)
        .order_by(Announcement.created_at.desc(), Announcement.id.desc())
        .limit(limit)
        .all()
    )


def announcement_stats(db: Session) -> dict:
    since = datetime.now(timezone.utc) - timedelta(days=7)
    total = db.query(func.count(Announcement.id)).scalar() or 0
    recent = (
        db.query(func.count(Announcement.id))
        .filter(Announcement.created_at >= since)
        .scalar()
        or 0
    )
    subscriptions = db.query(func.count(PushSubscription.id)).scalar() or 0
    # key names are the ones the dashboard cards read
    return {"totalAnnouncements": total, "announcementsLast7Days": recent, "totalSubscriptions": subscriptions}
