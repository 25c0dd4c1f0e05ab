import logging
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.orm import Session

from kpi_backend.models.employee import Employee, EmployeeRole
from kpi_backend.models.notification import Notification

logger = logging.getLogger(__name__)

EVENT_EVALUATION_CREATED = "evaluation_created"
EVENT_EVALUATION_STATUS_CHANGE = "evaluation_status_change"
EVENT_EVALUATION_DELETED = "evaluation_deleted"
EVENT_SELF_SCORE_UPDATED = "self_score_updated"
EVENT_MANAGER_SCORE_UPDATED = "manager_score_updated"
EVENT_HR_SCORE_UPDATED = "hr_score_updated"
EVENT_OBJECTION_SUBMITTED = "objection_submitted"
EVENT_OBJECTION_HANDLED = "objection_handled"
EVENT_INVITATION_CREATED = "invitation_created"
EVENT_INVITATION_STATUS_CHANGE = "invitation_status_change"
EVENT_INVITED_SCORE_UPDATED = "invited_score_updated"
EVENT_INVITATION_DELETED = "invitation_deleted"
EVENT_SHARE_CREATED = "share_created"


class NotificationService:
    @staticmethod
    def create_notification(
        db: Session,
        recipient_id: int,
        event: str,
        title: str,
        message: str,
        actor_id: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None
    ) -> Notification:
        """
        Internal utility for creating notifications.
        """
        notification = Notification(
            recipient_id=recipient_id,
            actor_id=actor_id,
            event=event,
            title=title,
            message=message,
            payload=payload
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)
        return notification

    @staticmethod
    def dispatch(
        db: Session,
        recipient_id: Optional[int],
        event: str,
        title: str,
        message: str,
        actor_id: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None
    ) -> Optional[Notification]:
        """
        Fire-and-forget notification.
        Called after the primary change is committed; a failure here is logged and dropped.
        """
        if recipient_id is None:
            return None
        try:
            return NotificationService.create_notification(
                db, recipient_id, event, title, message, actor_id, payload
            )
        except Exception as e:
            # Don't fail the request if notification fails
            db.rollback()
            logger.warning(f"Notification '{event}' to {recipient_id} failed: {e}", exc_info=True)
            return None

    @staticmethod
    def hr_user_ids(db: Session) -> list:
        rows = db.query(Employee.id).filter(
            Employee.role == EmployeeRole.HR.value,
            Employee.is_active == True
        ).all()
        return [row[0] for row in rows]

    @staticmethod
    def notify_many(
        db: Session,
        recipient_ids: Iterable[int],
        event: str,
        title: str,
        message: str,
        actor_id: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None
    ):
        for recipient_id in set(recipient_ids):
            NotificationService.dispatch(db, recipient_id, event, title, message, actor_id, payload)

    @staticmethod
    def notify_hr(
        db: Session,
        event: str,
        title: str,
        message: str,
        actor_id: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None
    ):
        NotificationService.notify_many(
            db, NotificationService.hr_user_ids(db), event, title, message, actor_id, payload
        )
