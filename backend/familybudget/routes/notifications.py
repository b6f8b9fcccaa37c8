from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List
from datetime import date

from familybudget.config import get_settings
from familybudget.database import get_db
from familybudget.db_helpers import get_user_id, require_family_member
from familybudget.schemas import (
    BillReminderRequest,
    BillReminderResponse,
    MarkAllReadResponse,
    NotificationResponse,
)
from familybudget.services.notification_service import NotificationService

router = APIRouter()


@router.get("/family/{family_id}", response_model=List[NotificationResponse])
def list_notifications(
    family_id: int,
    unread_only: bool = Query(False),
    db: Session = Depends(get_db)
):
    """List notifications of a family, newest first."""
    require_family_member(db, family_id, get_user_id())
    return NotificationService(db).list_notifications(family_id, unread_only=unread_only)


@router.post("/bill-reminders", response_model=BillReminderResponse)
def create_bill_reminders(request: BillReminderRequest, db: Session = Depends(get_db)):
    """Create reminders for expense rules due within the look-ahead window."""
    require_family_member(db, request.family_id, get_user_id())
    days_ahead = request.days_ahead if request.days_ahead is not None else get_settings().bill_reminder_days
    rule_ids = NotificationService(db).create_bill_reminders(
        request.family_id,
        request.as_of or date.today(),
        days_ahead=days_ahead,
    )
    return BillReminderResponse(created_count=len(rule_ids), recurring_transaction_ids=rule_ids)


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_read(notification_id: int, db: Session = Depends(get_db)):
    service = NotificationService(db)
    notification = service.get_notification(notification_id)
    require_family_member(db, notification.family_id, get_user_id())
    return service.mark_read(notification)


@router.put("/family/{family_id}/read-all", response_model=MarkAllReadResponse)
def mark_all_notifications_read(family_id: int, db: Session = Depends(get_db)):
    """Mark every notification of the family visible to the caller as read."""
    user_id = get_user_id()
    require_family_member(db, family_id, user_id)
    updated = NotificationService(db).mark_all_read(family_id, user_id)
    return MarkAllReadResponse(message="All notifications marked as read", updated_count=updated)


@router.delete("/{notification_id}", status_code=204)
def delete_notification(notification_id: int, db: Session = Depends(get_db)):
    service = NotificationService(db)
    notification = service.get_notification(notification_id)
    require_family_member(db, notification.family_id, get_user_id())
    service.delete_notification(notification)
    return None
