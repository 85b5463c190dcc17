# File: app/routers/users.py
from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.security import verify_admin_access
from app.models.user import User

router = APIRouter(prefix="/admin/api/users", tags=["admin-users"], dependencies=[Depends(verify_admin_access)])

@router.get("")
def list_users(db: Session = Depends(get_db)):
    return [{"id":u.id,"email":u.email,"name":u.name,"role":u.role.value,"is_active":u.is_active} for u in db.query(User).order_by(User.id.desc())]

@router.get("/total")
def total_users(db: Session = Depends(get_db)):
    return {"totalUsers": db.query(func.count(User.id)).scalar() or 0}
