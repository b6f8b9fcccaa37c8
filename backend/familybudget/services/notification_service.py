"""
Service for family notifications.
Bill reminders are generated from active expense rules that come due soon.
"""
from datetime import date, timedelta
from typing import List
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload
import logging

from familybudget.exceptions import NotFoundError
from familybudget.models import Notification, RecurringTransaction

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_DAYS = 3


def reminder_title(days_until: int) -> str:
    if days_until == 0:
        return "Bill Due Today"
    if days_until == 1:
        return "Bill Due Tomorrow"
    return f"Bill Due in {days_until} Days"


class NotificationService:
    """Service for creating and reading family notifications."""

    def __init__(self, db: Session):
        self.db = db

    def list_notifications(self, family_id: int, unread_only: bool = False) -> List[Notification]:
        query = self.db.query(Notification).filter(Notification.family_id == family_id)
        if unread_only:
            query = query.filter(Notification.read == False)  # noqa: E712
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()

    def get_notification(self, notification_id: int) -> Notification:
        notification = self.db.query(Notification).filter(Notification.id == notification_id).first()
        if not notification:
            raise NotFoundError("Notification not found")
        return notification

    def mark_read(self, notification: Notification) -> Notification:
        notification.read = True
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def mark_all_read(self, family_id: int, user_id: int) -> int:
        """
        Mark the family's notifications addressed to ``user_id`` or to nobody as read.

        Returns:
            Number of notifications that changed.
        """
        updated = self.db.query(Notification).filter(
            Notification.family_id == family_id,
            Notification.read == False,  # noqa: E712
            or_(Notification.user_id.is_(None), Notification.user_id == user_id)
        ).update({"read": True}, synchronize_session=False)
        self.db.commit()
        logger.info(f"[REMINDERS] Marked {updated} notification(s) read for family {family_id}")
        return updated

    def delete_notification(self, notification: Notification) -> None:
        self.db.delete(notification)
        self.db.commit()

    def create_bill_reminders(
        self,
        family_id: int,
        as_of: date,
        days_ahead: int = DEFAULT_REMINDER_DAYS,
    ) -> List[int]:
        """
        Create bill reminder notifications for expense rules due within ``days_ahead`` days.

        A rule gets at most one reminder per occurrence date.

        Args:
            family_id: Family to check.
            as_of: First day of the look-ahead window.
            days_ahead: Length of the window in days.

        Returns:
            IDs of the rules a reminder was created for.
        """
        window_end = as_of + timedelta(days=days_ahead)
        upcoming = self.db.query(RecurringTransaction).filter(
            RecurringTransaction.family_id == family_id,
            RecurringTransaction.is_active == True,  # noqa: E712
            RecurringTransaction.transaction_type == "expense",
            RecurringTransaction.next_occurrence >= as_of,
            RecurringTransaction.next_occurrence <= window_end,
            or_(
                RecurringTransaction.end_date.is_(None),
                RecurringTransaction.end_date >= RecurringTransaction.next_occurrence,
            ),
        ).options(
            joinedload(RecurringTransaction.category)
        ).order_by(RecurringTransaction.next_occurrence, RecurringTransaction.id).all()

        created = []
        for rule in upcoming:
            existing = self.db.query(Notification).filter(
                Notification.family_id == family_id,
                Notification.notification_type == "bill_reminder",
                Notification.recurring_transaction_id == rule.id,
                Notification.due_date == rule.next_occurrence
            ).first()
            if existing:
                continue

            days_until = (rule.next_occurrence - as_of).days
            label = rule.description or (rule.category.name if rule.category else "Recurring bill")
            self.db.add(Notification(
                family_id=family_id,
                user_id=rule.user_id,
                notification_type="bill_reminder",
                title=reminder_title(days_until),
                message=f"{label} - {rule.amount} is due on {rule.next_occurrence.isoformat()}",
                recurring_transaction_id=rule.id,
                due_date=rule.next_occurrence,
            ))
            created.append(rule.id)

        self.db.commit()
        if created:
            logger.info(f"[REMINDERS] Created {len(created)} bill reminder(s) for family {family_id}")
        return created
