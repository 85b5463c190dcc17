# app/services/broadcast.py
"""Fan-out of a freshly stored announcement to Discord and every push subscription.

The announcement is already committed when this runs, so nothing here is
allowed to raise back into the request. Network calls happen on worker
threads; every database read and write stays on the calling thread.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.announcement import Announcement
from app.models.push import PushSubscription
from app.models.user import User
from app.services.notify_discord import DiscordNotifier, build_discord_notifier
from app.services.notify_push import PushOutcome, WebPushClient, build_push_client

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorSnapshot:
    name: str
    avatar_url: Optional[str] = None

    @classmethod
    def from_user(cls, user: Optional[User]) -> "AuthorSnapshot":
        name = (user.name if user and user.name else "Unknown").strip()
        return cls(name=name, avatar_url=user.avatar_url if user else None)


@dataclass
class BroadcastReport:
    chat_sent: bool = False
    attempted: int = 0
    delivered: int = 0
    pruned_ids: list[int] = field(default_factory=list)


class AnnouncementBroadcaster:
    def __init__(self, chat: DiscordNotifier, push: WebPushClient, max_workers: int = 16):
        self.chat = chat
        self.push = push
        self.max_workers = max(1, max_workers)

    def broadcast(self, db: Session, announcement: Announcement) -> BroadcastReport:
        report = BroadcastReport()
        try:
            author = AuthorSnapshot.from_user(db.get(User, announcement.author_id))
            subs = [(s.id, s.subscription_info()) for s in db.query(PushSubscription).all()]
        except SQLAlchemyError as e:
            db.rollback()
            log.error(f"Could not load broadcast recipients: {e}", exc_info=True)
            return report

        payload = {"title": announcement.title, "content": announcement.content, "author": author.name}
        report.attempted = len(subs)

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(subs) + 1)) as pool:
            chat_future = pool.submit(
                self.chat.send_announcement,
                announcement.title, announcement.content, author.name, author.avatar_url,
            )
            push_futures = [
                (sub_id, pool.submit(self.push.send, sub_id, info, payload))
                for sub_id, info in subs
            ]

            # join point: every push attempt settles before anything is pruned
            outcomes: list[PushOutcome] = []
            for sub_id, fut in push_futures:
                try:
                    outcomes.append(fut.result())
                except Exception as e:
                    log.error(f"Failed to send notification to subscription {sub_id}: {e}", exc_info=True)
                    outcomes.append(PushOutcome(sub_id, delivered=False))
            try:
                report.chat_sent = bool(chat_future.result())
            except Exception as e:
                log.error(f"Error sending Discord announcement: {e}", exc_info=True)

        report.delivered = sum(1 for o in outcomes if o.delivered)
        dead = [o.subscription_id for o in outcomes if o.permanent]
        if dead:
            report.pruned_ids = self._prune(db, dead)
        return report

    def _prune(self, db: Session, ids: list[int]) -> list[int]:
        try:
            db.query(PushSubscription).filter(PushSubscription.id.in_(ids)).delete(synchronize_session=False)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            log.error(f"Error removing invalid subscriptions from database: {e}", exc_info=True)
            return []
        log.info("Removed %d invalid subscription(s) from database", len(ids))
        return ids


@lru_cache
def get_broadcaster() -> AnnouncementBroadcaster:
    return AnnouncementBroadcaster(
        build_discord_notifier(),
        build_push_client(),
        max_workers=settings.notify_max_workers,
    )
