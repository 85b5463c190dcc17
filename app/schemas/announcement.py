# File: app/schemas/announcement.py
from pydantic import BaseModel, ConfigDict
from typing import Any
from datetime import datetime


class AnnouncementIn(BaseModel):
    # Type and emptiness are checked by the writer so a missing, blank or
    # non-string field all map to the same 400.
    title: Any = None
    content: Any = None


class AnnouncementOut(BaseModel):
    id: int
    title: str
    content: str
    author_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AnnouncementListItem(AnnouncementOut):
    author_name: str


class AnnouncementDeleted(BaseModel):
    message: str
    deleted_announcement: AnnouncementOut


class AnnouncementStats(BaseModel):
    totalAnnouncements: int
    announcementsLast7Days: int
    totalSubscriptions: int
