# File: app/routers/announcements.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.ratelimit import limiter
from app.core.security import verify_admin_access
from app.db.session import get_db
from app.models.user import User
from app.schemas.announcement import (
    AnnouncementIn,
    AnnouncementOut,
    AnnouncementListItem,
    AnnouncementDeleted,
    AnnouncementStats,
)
from app.services.announcements import (
    NotFoundError,
    ValidationError,
    announcement_stats,
    create_announcement,
    delete_announcement,
    list_announcements,
)
from app.services.broadcast import AnnouncementBroadcaster, AuthorSnapshot, get_broadcaster

log = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/api/announcements", tags=["admin-announcements"])


@router.post("", response_model=AnnouncementOut, status_code=201)
@limiter.limit("10/minute")
def create(
    request: Request,
    body: AnnouncementIn,
    db: Session = Depends(get_db),
    admin: User = Depends(verify_admin_access),
    broadcaster: AnnouncementBroadcaster = Depends(get_broadcaster),
):
    try:
        row = create_announcement(db, body.title, body.content, admin.id)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    # the row is committed; the caller gets 201 whatever happens to delivery
    report = broadcaster.broadcast(db, row)
    log.info(
        "Announcement %s broadcast: chat=%s push=%d/%d pruned=%d",
        row.id, report.chat_sent, report.delivered, report.attempted, len(report.pruned_ids),
    )
    return row


@router.delete("", response_model=AnnouncementDeleted)
def delete(
    id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    admin: User = Depends(verify_admin_access),
):
    if not id:
        raise HTTPException(status_code=400, detail="Announcement ID is required")
    try:
        announcement_id = int(id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Announcement ID must be an integer")

    try:
        deleted = delete_announcement(db, announcement_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SQLAlchemyError as e:
        db.rollback()
        log.error(f"Error deleting announcement: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")

    return {"message": "Announcement deleted successfully", "deleted_announcement": deleted}


@router.get("", response_model=list[AnnouncementListItem], dependencies=[Depends(verify_admin_access)])
def index(limit: int = Query(50, ge=1, le=200), db: Session = Depends(get_db)):
    return [
        {
            "id": a.id,
            "title": a.title,
            "content": a.content,
            "author_id": a.author_id,
            "created_at": a.created_at,
            "author_name": AuthorSnapshot.from_user(a.author).name,
        }
        for a in list_announcements(db, limit=limit)
    ]


@router.get("/stats", response_model=AnnouncementStats, dependencies=[Depends(verify_admin_access)])
def stats(db: Session = Depends(get_db)):
    return announcement_stats(db)
