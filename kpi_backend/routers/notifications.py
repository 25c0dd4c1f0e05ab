from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from kpi_backend.core.exceptions import NotFoundError
from kpi_backend.database import get_db
from kpi_backend.models.employee import Employee
from kpi_backend.models.notification import Notification
from kpi_backend.routers.deps import get_current_employee
from kpi_backend.schemas.evaluation import CountResponse
from kpi_backend.schemas.notification import NotificationResponse
from kpi_backend.services.base import commit_or_raise

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _own_notification(db: Session, notification_id: int, actor: Employee) -> Notification:
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.recipient_id == actor.id,
    ).first()
    if not notification:
        raise NotFoundError("Notification not found")
    return notification


@router.get("/", response_model=List[NotificationResponse])
def get_notifications(
    unread_only: bool = False,
    event: Optional[str] = None,
    limit: int = 50,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    query = db.query(Notification).filter(Notification.recipient_id == actor.id)
    if unread_only:
        query = query.filter(Notification.is_read == False)
    if event:
        query = query.filter(Notification.event == event)
    limit = min(max(limit, 1), 100)
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


@router.get("/unread-count", response_model=CountResponse)
def unread_count(
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    count = db.query(Notification).filter(
        Notification.recipient_id == actor.id,
        Notification.is_read == False,
    ).count()
    return {"count": count}


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_as_read(
    notification_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    notification = _own_notification(db, notification_id, actor)
    notification.is_read = True
    commit_or_raise(db, "mark notification as read")
    db.refresh(notification)
    return notification


@router.post("/mark-all-read")
def mark_all_notifications_as_read(
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    updated = db.query(Notification).filter(
        Notification.recipient_id == actor.id,
        Notification.is_read == False
    ).update({Notification.is_read: True}, synchronize_session=False)
    commit_or_raise(db, "mark notifications as read")
    return {"success": True, "updated": updated}


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    db.delete(_own_notification(db, notification_id, actor))
    commit_or_raise(db, "delete notification")
    return {"success": True, "message": "Notification deleted"}
