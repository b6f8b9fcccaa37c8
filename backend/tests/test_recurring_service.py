"""
Tests for recurring rule validation and due-rule processing.
"""
from datetime import date
from decimal import Decimal

import pytest

from familybudget.exceptions import CategoryMismatchError, NotFoundError, ValidationError
from familybudget.models import RecurringTransaction, Transaction
from familybudget.schemas import RecurringTransactionCreate, RecurringTransactionUpdate
from familybudget.services import recurring_service
from familybudget.services.recurring_service import RecurringService


def _create(db, family, **overrides) -> RecurringTransaction:
    fields = {
        "family_id": family.family_id,
        "category_id": family.expense_category_id,
        "transaction_type": "expense",
        "amount": Decimal("1200.00"),
        "description": "Apartment rent",
        "frequency": "monthly",
        "start_date": date(2024, 1, 1),
        "day_of_month": 1,
    }
    fields.update(overrides)
    return RecurringService(db).create_rule(family.user_id, RecurringTransactionCreate(**fields))


def _set_next_occurrence(db, rule: RecurringTransaction, value: date) -> None:
    rule.next_occurrence = value
    db.commit()


def _transactions(db, family_id: int) -> list[Transaction]:
    return db.query(Transaction).filter(Transaction.family_id == family_id).order_by(Transaction.id).all()


# ── Creation and validation ──────────────────────────────


def test_create_sets_first_occurrence_after_start_date(db, family) -> None:
    rule = _create(db, family)

    assert rule.id is not None
    assert rule.next_occurrence == date(2024, 2, 1)
    assert rule.is_active is True
    assert rule.user_id == family.user_id


def test_create_keeps_only_the_anchor_used_by_frequency(db, family) -> None:
    weekly = _create(db, family, frequency="weekly", day_of_month=15, day_of_week=2)
    monthly = _create(db, family, frequency="monthly", day_of_month=15, day_of_week=2)

    assert (weekly.day_of_month, weekly.day_of_week) == (None, 2)
    assert (monthly.day_of_month, monthly.day_of_week) == (15, None)


def test_create_rejects_category_type_mismatch_and_persists_nothing(db, family) -> None:
    with pytest.raises(CategoryMismatchError):
        _create(db, family, category_id=family.income_category_id, transaction_type="expense")

    assert db.query(RecurringTransaction).count() == 0


def test_create_reports_missing_required_fields(db, family) -> None:
    with pytest.raises(ValidationError) as excinfo:
        RecurringService(db).create_rule(
            family.user_id,
            RecurringTransactionCreate(family_id=family.family_id, transaction_type="expense"),
        )

    assert "category_id" in excinfo.value.detail
    assert "start_date" in excinfo.value.detail
    assert "family_id" not in excinfo.value.detail


@pytest.mark.parametrize(
    "amount",
    [Decimal("0"), Decimal("-10.50"), Decimal("0.001"), Decimal("12.345"), Decimal("100000000")],
)
def test_create_rejects_non_positive_amount(db, family, amount) -> None:
    with pytest.raises(ValidationError):
        _create(db, family, amount=amount)
    assert db.query(RecurringTransaction).count() == 0


def test_update_rejects_sub_cent_amount(db, family) -> None:
    rule = _create(db, family)

    with pytest.raises(ValidationError):
        RecurringService(db).update_rule(rule, RecurringTransactionUpdate(amount=Decimal("0.004")))

    db.expire_all()
    stored = db.query(RecurringTransaction).filter(RecurringTransaction.id == rule.id).one()
    assert stored.amount == Decimal("1200.00")


def test_monthly_rule_without_day_is_anchored_on_start_day(db, family) -> None:
    rule = _create(db, family, start_date=date(2023, 12, 31), day_of_month=None)
    assert rule.day_of_month == 31
    service = RecurringService(db)

    for _ in range(4):
        assert service.process_due_rules(family.family_id, date(2030, 1, 1)).created_count == 1

    dates = [t.date for t in _transactions(db, family.family_id)]
    assert dates == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]
    db.refresh(rule)
    assert rule.next_occurrence == date(2024, 5, 31)


def test_switching_to_monthly_anchors_on_start_day(db, family) -> None:
    rule = _create(db, family, frequency="weekly", start_date=date(2024, 1, 30))

    updated = RecurringService(db).update_rule(rule, RecurringTransactionUpdate(frequency="monthly"))

    assert updated.day_of_month == 30
    assert updated.next_occurrence == date(2024, 2, 29)


def test_create_rejects_end_date_before_start_date(db, family) -> None:
    with pytest.raises(ValidationError):
        _create(db, family, start_date=date(2024, 5, 1), end_date=date(2024, 4, 1))


def test_create_rejects_category_from_another_family(db, family) -> None:
    with pytest.raises(ValidationError):
        _create(db, family, category_id=9999)


# ── Updates ──────────────────────────────────────────────


def test_update_recalculates_from_start_date_with_new_frequency(db, family) -> None:
    rule = _create(db, family)
    _set_next_occurrence(db, rule, date(2024, 6, 1))

    service = RecurringService(db)
    updated = service.update_rule(rule, RecurringTransactionUpdate(frequency="weekly", day_of_week=1))

    assert updated.frequency == "weekly"
    assert updated.next_occurrence == date(2024, 1, 8)
    assert updated.day_of_month is None
    assert updated.day_of_week == 1


def test_update_of_unrelated_field_still_recalculates(db, family) -> None:
    rule = _create(db, family)
    _set_next_occurrence(db, rule, date(2024, 6, 1))

    updated = RecurringService(db).update_rule(rule, RecurringTransactionUpdate(description="Rent (new lease)"))

    assert updated.description == "Rent (new lease)"
    assert updated.next_occurrence == date(2024, 2, 1)


def test_update_can_deactivate_rule(db, family) -> None:
    rule = _create(db, family)
    updated = RecurringService(db).update_rule(rule, RecurringTransactionUpdate(is_active=False))
    assert updated.is_active is False


def test_update_rejects_category_mismatch_without_changes(db, family) -> None:
    rule = _create(db, family)

    with pytest.raises(CategoryMismatchError):
        RecurringService(db).update_rule(
            rule,
            RecurringTransactionUpdate(category_id=family.income_category_id, amount=Decimal("5")),
        )

    db.expire_all()
    stored = db.query(RecurringTransaction).filter(RecurringTransaction.id == rule.id).one()
    assert stored.category_id == family.expense_category_id
    assert stored.amount == Decimal("1200.00")


def test_update_ignores_null_for_required_columns(db, family) -> None:
    rule = _create(db, family)
    updated = RecurringService(db).update_rule(rule, RecurringTransactionUpdate(amount=None, description=None))

    assert updated.amount == Decimal("1200.00")
    assert updated.description is None


def test_get_rule_unknown_id(db, family) -> None:
    with pytest.raises(NotFoundError):
        RecurringService(db).get_rule(424242)


def test_delete_keeps_materialized_transactions(db, family) -> None:
    rule = _create(db, family)
    service = RecurringService(db)
    service.process_due_rules(family.family_id, date(2024, 2, 1))

    service.delete_rule(rule)

    transactions = _transactions(db, family.family_id)
    assert len(transactions) == 1
    assert transactions[0].recurring_transaction_id is None


# ── Processing ───────────────────────────────────────────


def test_process_materializes_due_rule_and_advances_schedule(db, family) -> None:
    rule = _create(db, family)
    service = RecurringService(db)

    result = service.process_due_rules(family.family_id, date(2024, 2, 1))

    assert result.created_count == 1
    assert result.errors == []
    transactions = _transactions(db, family.family_id)
    assert [t.id for t in transactions] == result.created_transaction_ids
    assert transactions[0].date == date(2024, 2, 1)
    assert transactions[0].amount == Decimal("1200.00")
    assert transactions[0].transaction_type == "expense"
    assert transactions[0].category_id == family.expense_category_id
    assert transactions[0].description == "Apartment rent"
    assert transactions[0].recurring_transaction_id == rule.id

    db.refresh(rule)
    assert rule.next_occurrence == date(2024, 3, 1)


def test_second_run_with_same_as_of_date_creates_nothing(db, family) -> None:
    _create(db, family, frequency="daily", start_date=date(2024, 3, 9))
    service = RecurringService(db)

    first = service.process_due_rules(family.family_id, date(2024, 3, 10))
    second = service.process_due_rules(family.family_id, date(2024, 3, 10))

    assert first.created_count == 1
    assert second.created_count == 0
    assert len(_transactions(db, family.family_id)) == 1


def test_overdue_rule_catches_up_one_period_per_run(db, family) -> None:
    rule = _create(db, family, start_date=date(2023, 12, 1))
    assert rule.next_occurrence == date(2024, 1, 1)
    service = RecurringService(db)

    result = service.process_due_rules(family.family_id, date(2024, 4, 15))

    assert result.created_count == 1
    assert _transactions(db, family.family_id)[0].date == date(2024, 1, 1)
    db.refresh(rule)
    assert rule.next_occurrence == date(2024, 2, 1)

    # Still due; every further run advances exactly one more period
    for _ in range(3):
        assert service.process_due_rules(family.family_id, date(2024, 4, 15)).created_count == 1
    assert service.process_due_rules(family.family_id, date(2024, 4, 15)).created_count == 0

    dates = [t.date for t in _transactions(db, family.family_id)]
    assert dates == [date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1), date(2024, 4, 1)]
    db.refresh(rule)
    assert rule.next_occurrence == date(2024, 5, 1)


def test_inactive_rule_is_never_processed(db, family) -> None:
    rule = _create(db, family, start_date=date(2020, 1, 1))
    RecurringService(db).update_rule(rule, RecurringTransactionUpdate(is_active=False))

    result = RecurringService(db).process_due_rules(family.family_id, date(2024, 12, 31))

    assert result.created_count == 0
    assert _transactions(db, family.family_id) == []


def test_rule_past_its_end_date_is_never_processed(db, family) -> None:
    rule = _create(db, family, start_date=date(2024, 1, 1), end_date=date(2024, 1, 20))
    assert rule.next_occurrence == date(2024, 2, 1)

    result = RecurringService(db).process_due_rules(family.family_id, date(2024, 3, 1))

    assert result.created_count == 0


def test_occurrence_on_end_date_is_processed(db, family) -> None:
    _create(db, family, start_date=date(2024, 1, 1), end_date=date(2024, 2, 1))
    service = RecurringService(db)

    assert service.process_due_rules(family.family_id, date(2024, 3, 1)).created_count == 1
    assert service.process_due_rules(family.family_id, date(2024, 3, 1)).created_count == 0


def test_rules_of_other_families_are_ignored(db, family) -> None:
    _create(db, family)
    result = RecurringService(db).process_due_rules(family.family_id + 1, date(2024, 2, 1))
    assert result.created_count == 0


def test_failing_rule_does_not_block_siblings(db, family, monkeypatch) -> None:
    weekly = _create(db, family, frequency="weekly", start_date=date(2024, 1, 1), description="Groceries")
    monthly = _create(db, family, start_date=date(2024, 1, 1))

    real_next_occurrence = recurring_service.next_occurrence

    def flaky_next_occurrence(anchor, frequency, day_of_month=None, day_of_week=None):
        if frequency == "weekly":
            raise ValueError("calendar unavailable")
        return real_next_occurrence(anchor, frequency, day_of_month, day_of_week)

    monkeypatch.setattr(recurring_service, "next_occurrence", flaky_next_occurrence)

    result = RecurringService(db).process_due_rules(family.family_id, date(2024, 2, 1))

    assert result.created_count == 1
    assert result.errors == [{"rule_id": weekly.id, "error": "calendar unavailable"}]
    transactions = _transactions(db, family.family_id)
    assert [t.recurring_transaction_id for t in transactions] == [monthly.id]
    db.refresh(weekly)
    assert weekly.next_occurrence == date(2024, 1, 8)


def test_concurrent_advance_is_not_materialized_twice(db, family, monkeypatch) -> None:
    rule = _create(db, family)
    service = RecurringService(db)
    stale_due_rules = service.get_due_rules(family.family_id, date(2024, 2, 1))

    # Another run advances the rule after this run has read it
    db.expire_on_commit = False
    db.query(RecurringTransaction).filter(RecurringTransaction.id == rule.id).update(
        {"next_occurrence": date(2024, 3, 1)}, synchronize_session=False
    )
    db.commit()
    monkeypatch.setattr(service, "get_due_rules", lambda family_id, as_of: stale_due_rules)

    result = service.process_due_rules(family.family_id, date(2024, 2, 1))

    assert result.created_count == 0
    assert len(result.errors) == 1
    assert result.errors[0]["rule_id"] == rule.id
    assert _transactions(db, family.family_id) == []
    db.refresh(rule)
    assert rule.next_occurrence == date(2024, 3, 1)


def test_end_to_end_monthly_rule(db, family) -> None:
    rule = _create(db, family, start_date=date(2024, 1, 1), day_of_month=1)
    assert rule.next_occurrence == date(2024, 2, 1)

    result = RecurringService(db).process_due_rules(family.family_id, date(2024, 2, 1))

    assert result.created_count == 1
    assert _transactions(db, family.family_id)[0].date == date(2024, 2, 1)
    db.refresh(rule)
    assert rule.next_occurrence == date(2024, 3, 1)


# ── Queries ──────────────────────────────────────────────


def test_list_rules_orders_by_next_occurrence_with_details(db, family) -> None:
    later = _create(db, family, start_date=date(2024, 5, 1))
    sooner = _create(
        db,
        family,
        category_id=family.income_category_id,
        transaction_type="income",
        frequency="weekly",
        start_date=date(2024, 1, 1),
    )
    RecurringService(db).update_rule(later, RecurringTransactionUpdate(is_active=False))

    rules = RecurringService(db).list_rules(family.family_id)
    assert [r["id"] for r in rules] == [sooner.id, later.id]
    assert rules[0]["category_name"] == "Salary"
    assert rules[0]["user_name"] == "Owner"

    active = RecurringService(db).list_rules(family.family_id, is_active=True)
    assert [r["id"] for r in active] == [sooner.id]


def test_preview_lists_upcoming_dates(db, family) -> None:
    rule = _create(db, family, start_date=date(2024, 1, 31), day_of_month=31)
    preview = RecurringService(db).preview_rule(rule, count=3)
    assert preview == [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]


def test_summary_uses_monthly_equivalents(db, family) -> None:
    _create(db, family, amount=Decimal("100"))
    _create(db, family, amount=Decimal("1200"), frequency="yearly")
    _create(db, family, amount=Decimal("10"), frequency="weekly")
    _create(
        db,
        family,
        category_id=family.income_category_id,
        transaction_type="income",
        amount=Decimal("3000"),
    )

    summary = RecurringService(db).summarize_rules(family.family_id)

    assert summary["total_active"] == 4
    assert summary["monthly_expenses"] == Decimal("243.33")
    assert summary["monthly_income"] == Decimal("3000.00")
    assert summary["yearly_income"] == Decimal("36000.00")
    assert summary["by_frequency"]["monthly"]["count"] == 2
    assert summary["by_frequency"]["yearly"]["monthly_equivalent"] == Decimal("100.00")
