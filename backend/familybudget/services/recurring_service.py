"""
Service for recurring transaction rules.
Handles:
1. Creating and updating rules (validation + next occurrence calculation)
2. Processing due rules into ledger transactions, one period per run
3. Listing, previewing and summarizing rules for a family
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload
import logging

from familybudget.exceptions import (
    CategoryMismatchError,
    FamilyBudgetError,
    NotFoundError,
    ScheduleConflictError,
    ValidationError,
)
from familybudget.models import Category, RecurringTransaction, Transaction
from familybudget.schemas import RecurringTransactionCreate, RecurringTransactionUpdate
from familybudget.services.schedule import next_occurrence, upcoming_occurrences

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("family_id", "category_id", "transaction_type", "amount", "frequency", "start_date")

# Columns that cannot be cleared through an update; None means "keep current value"
NON_NULLABLE_UPDATE_FIELDS = {"category_id", "transaction_type", "amount", "frequency", "start_date", "is_active"}

MONTHLY_FACTORS = {
    "daily": Decimal(365) / Decimal(12),
    "weekly": Decimal(52) / Decimal(12),
    "monthly": Decimal(1),
    "yearly": Decimal(1) / Decimal(12),
}

CENTS = Decimal("0.01")

# Numeric(10, 2) holds at most eight integer digits
MAX_AMOUNT = Decimal("100000000")


@dataclass
class ProcessResult:
    """Outcome of one processing run for a family."""
    created_transaction_ids: List[int] = field(default_factory=list)
    errors: List[Dict] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return len(self.created_transaction_ids)


def _anchors_for(
    frequency: str,
    start_date: date,
    day_of_month: Optional[int],
    day_of_week: Optional[int],
) -> Tuple[Optional[int], Optional[int]]:
    """
    Keep only the anchor that the frequency uses.

    Monthly rules without an explicit day are anchored on the start date's day,
    so clamping in a short month does not shift later occurrences.
    """
    if frequency == "monthly":
        return day_of_month or start_date.day, None
    if frequency == "weekly":
        return None, day_of_week
    return None, None


class RecurringService:
    """Service for managing recurring rules and materializing due occurrences."""

    def __init__(self, db: Session):
        self.db = db

    # ── Validation ────────────────────────────────────────

    @staticmethod
    def _validate_amount(amount: Decimal) -> None:
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero")
        if amount >= MAX_AMOUNT:
            raise ValidationError("Amount is too large")
        if amount != amount.quantize(CENTS):
            raise ValidationError("Amount cannot have more than two decimal places")

    @staticmethod
    def _validate_dates(start_date: date, end_date: Optional[date]) -> None:
        if end_date is not None and end_date < start_date:
            raise ValidationError("End date cannot be before start date")

    def _validate_category(self, family_id: int, category_id: int, transaction_type: str) -> Category:
        category = self.db.query(Category).filter(
            Category.id == category_id,
            Category.family_id == family_id
        ).first()
        if not category:
            raise ValidationError("Category not found")
        if category.category_type != transaction_type:
            raise CategoryMismatchError(
                f"Category '{category.name}' is {category.category_type}, "
                f"not {transaction_type}"
            )
        return category

    # ── Queries ───────────────────────────────────────────

    def get_rule(self, rule_id: int) -> RecurringTransaction:
        rule = self.db.query(RecurringTransaction).filter(RecurringTransaction.id == rule_id).first()
        if not rule:
            raise NotFoundError("Recurring transaction not found")
        return rule

    def list_rules(self, family_id: int, is_active: Optional[bool] = None) -> List[dict]:
        """
        List rules of a family ordered by next occurrence, with category and creator details.
        """
        query = self.db.query(RecurringTransaction).filter(
            RecurringTransaction.family_id == family_id
        ).options(
            joinedload(RecurringTransaction.category),
            joinedload(RecurringTransaction.user),
        )

        if is_active is not None:
            query = query.filter(RecurringTransaction.is_active == is_active)

        rules = query.order_by(RecurringTransaction.next_occurrence, RecurringTransaction.id).all()
        return [self.with_details(rule) for rule in rules]

    @staticmethod
    def with_details(rule: RecurringTransaction) -> dict:
        return {
            "id": rule.id,
            "family_id": rule.family_id,
            "user_id": rule.user_id,
            "category_id": rule.category_id,
            "transaction_type": rule.transaction_type,
            "amount": rule.amount,
            "description": rule.description,
            "frequency": rule.frequency,
            "start_date": rule.start_date,
            "end_date": rule.end_date,
            "next_occurrence": rule.next_occurrence,
            "day_of_month": rule.day_of_month,
            "day_of_week": rule.day_of_week,
            "is_active": rule.is_active,
            "currency": rule.currency,
            "created_at": rule.created_at,
            "updated_at": rule.updated_at,
            "category_name": rule.category.name if rule.category else None,
            "color": rule.category.color if rule.category else None,
            "icon": rule.category.icon if rule.category else None,
            "user_name": rule.user.name if rule.user else None,
        }

    def get_due_rules(self, family_id: int, as_of: date) -> List[RecurringTransaction]:
        """Active rules whose next occurrence is on or before ``as_of`` and not past their end date."""
        return self.db.query(RecurringTransaction).filter(
            RecurringTransaction.family_id == family_id,
            RecurringTransaction.is_active == True,  # noqa: E712
            RecurringTransaction.next_occurrence <= as_of,
            or_(
                RecurringTransaction.end_date.is_(None),
                RecurringTransaction.end_date >= RecurringTransaction.next_occurrence,
            ),
        ).order_by(RecurringTransaction.next_occurrence, RecurringTransaction.id).all()

    def get_families_with_due_rules(self, as_of: date) -> List[int]:
        rows = self.db.query(RecurringTransaction.family_id).filter(
            RecurringTransaction.is_active == True,  # noqa: E712
            RecurringTransaction.next_occurrence <= as_of,
            or_(
                RecurringTransaction.end_date.is_(None),
                RecurringTransaction.end_date >= RecurringTransaction.next_occurrence,
            ),
        ).distinct().order_by(RecurringTransaction.family_id).all()
        return [row[0] for row in rows]

    def preview_rule(self, rule: RecurringTransaction, count: int = 5) -> List[date]:
        """Upcoming occurrence dates, starting with the current next occurrence."""
        return upcoming_occurrences(
            rule.next_occurrence,
            rule.frequency,
            count,
            day_of_month=rule.day_of_month,
            day_of_week=rule.day_of_week,
            end_date=rule.end_date,
        )

    def summarize_rules(self, family_id: int) -> dict:
        """
        Summarize active rules of a family.

        Returns:
            Dict with monthly and yearly equivalents for expenses and income,
            plus counts and totals grouped by frequency.
        """
        rules = self.db.query(RecurringTransaction).filter(
            RecurringTransaction.family_id == family_id,
            RecurringTransaction.is_active == True  # noqa: E712
        ).all()

        monthly_expenses = Decimal("0")
        monthly_income = Decimal("0")
        by_frequency = {}

        for rule in rules:
            amount = Decimal(str(rule.amount))
            monthly_amount = amount * MONTHLY_FACTORS[rule.frequency]
            if rule.transaction_type == "income":
                monthly_income += monthly_amount
            else:
                monthly_expenses += monthly_amount

            if rule.frequency not in by_frequency:
                by_frequency[rule.frequency] = {"count": 0, "total": Decimal("0"), "monthly_equivalent": Decimal("0")}
            by_frequency[rule.frequency]["count"] += 1
            by_frequency[rule.frequency]["total"] += amount
            by_frequency[rule.frequency]["monthly_equivalent"] += monthly_amount

        for summary in by_frequency.values():
            summary["monthly_equivalent"] = summary["monthly_equivalent"].quantize(CENTS)

        return {
            "total_active": len(rules),
            "monthly_expenses": monthly_expenses.quantize(CENTS),
            "monthly_income": monthly_income.quantize(CENTS),
            "yearly_expenses": (monthly_expenses * 12).quantize(CENTS),
            "yearly_income": (monthly_income * 12).quantize(CENTS),
            "by_frequency": by_frequency,
        }

    # ── Create / update / delete ──────────────────────────

    def create_rule(self, user_id: int, data: RecurringTransactionCreate) -> RecurringTransaction:
        """
        Validate and persist a new rule.

        The first occurrence is the first date after ``start_date``.

        Raises:
            ValidationError: Missing required fields, non-positive amount,
                end date before start date, or unknown category.
            CategoryMismatchError: Rule type differs from the category type.
        """
        missing = [name for name in REQUIRED_FIELDS if getattr(data, name) is None]
        if missing:
            raise ValidationError(f"Required fields missing: {', '.join(missing)}")

        self._validate_amount(data.amount)
        self._validate_dates(data.start_date, data.end_date)
        self._validate_category(data.family_id, data.category_id, data.transaction_type)

        day_of_month, day_of_week = _anchors_for(
            data.frequency, data.start_date, data.day_of_month, data.day_of_week
        )

        rule = RecurringTransaction(
            family_id=data.family_id,
            user_id=user_id,
            category_id=data.category_id,
            transaction_type=data.transaction_type,
            amount=data.amount,
            description=data.description or None,
            frequency=data.frequency,
            start_date=data.start_date,
            end_date=data.end_date,
            next_occurrence=next_occurrence(data.start_date, data.frequency, day_of_month, day_of_week),
            day_of_month=day_of_month,
            day_of_week=day_of_week,
            is_active=True,
        )
        if data.currency:
            rule.currency = data.currency

        self.db.add(rule)
        self.db.commit()
        self.db.refresh(rule)
        logger.info(
            f"[RECURRING] Created rule {rule.id} for family {rule.family_id}: "
            f"{rule.frequency}, next occurrence {rule.next_occurrence.isoformat()}"
        )
        return rule

    def update_rule(self, rule: RecurringTransaction, updates: RecurringTransactionUpdate) -> RecurringTransaction:
        """
        Apply a partial update and recalculate the next occurrence.

        The next occurrence is always recomputed from the rule's start date
        using the frequency and anchors in effect after the update.

        Raises:
            ValidationError: Non-positive amount, end date before start date, or unknown category.
            CategoryMismatchError: Rule type differs from the category type.
        """
        update_data = updates.model_dump(exclude_unset=True)
        values = {
            name: getattr(rule, name)
            for name in (
                "category_id", "transaction_type", "amount", "description", "frequency",
                "start_date", "end_date", "day_of_month", "day_of_week", "is_active",
            )
        }
        for name, value in update_data.items():
            if value is None and name in NON_NULLABLE_UPDATE_FIELDS:
                continue
            values[name] = value

        self._validate_amount(Decimal(str(values["amount"])))
        self._validate_dates(values["start_date"], values["end_date"])
        self._validate_category(rule.family_id, values["category_id"], values["transaction_type"])

        values["day_of_month"], values["day_of_week"] = _anchors_for(
            values["frequency"], values["start_date"], values["day_of_month"], values["day_of_week"]
        )
        values["next_occurrence"] = next_occurrence(
            values["start_date"],
            values["frequency"],
            values["day_of_month"],
            values["day_of_week"],
        )

        for name, value in values.items():
            setattr(rule, name, value)

        self.db.commit()
        self.db.refresh(rule)
        logger.info(
            f"[RECURRING] Updated rule {rule.id}: next occurrence {rule.next_occurrence.isoformat()}"
        )
        return rule

    def delete_rule(self, rule: RecurringTransaction) -> None:
        rule_id = rule.id
        self.db.delete(rule)
        self.db.commit()
        logger.info(f"[RECURRING] Deleted rule {rule_id}")

    # ── Processing ────────────────────────────────────────

    def process_due_rules(self, family_id: int, as_of: date) -> ProcessResult:
        """
        Materialize every due rule of a family into a ledger transaction.

        Each rule produces at most one transaction per run, dated at its
        current next occurrence, and then advances by one period. A rule that
        is several periods overdue stays due until later runs catch it up.

        Failures are isolated per rule: the failing rule's writes are rolled
        back, the error is recorded in the result, and the remaining rules
        are still processed.

        Args:
            family_id: Family whose rules are processed.
            as_of: Date against which rules are considered due.

        Returns:
            ProcessResult with created transaction ids and per-rule errors.
        """
        due_rules = self.get_due_rules(family_id, as_of)
        rule_ids = [rule.id for rule in due_rules]
        logger.info(
            f"[RECURRING] Processing {len(due_rules)} due rule(s) for family {family_id} "
            f"as of {as_of.isoformat()}"
        )

        result = ProcessResult()
        for rule_id, rule in zip(rule_ids, due_rules):
            try:
                transaction_id = self._materialize(rule)
            except (SQLAlchemyError, ValueError, FamilyBudgetError) as e:
                self.db.rollback()
                logger.error(f"[RECURRING] Failed to process rule {rule_id}: {type(e).__name__}: {e}")
                result.errors.append({"rule_id": rule_id, "error": str(e)})
                continue
            result.created_transaction_ids.append(transaction_id)

        logger.info(
            f"[RECURRING] Family {family_id}: created {result.created_count} transaction(s), "
            f"{len(result.errors)} rule(s) failed"
        )
        return result

    def _materialize(self, rule: RecurringTransaction) -> int:
        """
        Insert the transaction for the rule's current occurrence and advance the rule.

        The advance only applies if the rule still holds the occurrence that
        was read, so a concurrent run cannot materialize the same date twice.
        """
        rule_id = rule.id
        scheduled = rule.next_occurrence
        following = next_occurrence(scheduled, rule.frequency, rule.day_of_month, rule.day_of_week)

        transaction = Transaction(
            family_id=rule.family_id,
            user_id=rule.user_id,
            category_id=rule.category_id,
            transaction_type=rule.transaction_type,
            amount=rule.amount,
            description=rule.description,
            date=scheduled,
            currency=rule.currency,
            recurring_transaction_id=rule_id,
        )
        self.db.add(transaction)
        self.db.flush()
        transaction_id = transaction.id

        advanced = self.db.query(RecurringTransaction).filter(
            RecurringTransaction.id == rule_id,
            RecurringTransaction.next_occurrence == scheduled
        ).update({"next_occurrence": following}, synchronize_session=False)
        if advanced != 1:
            raise ScheduleConflictError(
                f"Rule {rule_id} was already advanced past {scheduled.isoformat()}"
            )

        self.db.commit()
        logger.debug(
            f"[RECURRING] Rule {rule_id}: materialized {scheduled.isoformat()} as transaction "
            f"{transaction_id}, next occurrence {following.isoformat()}"
        )
        return transaction_id
