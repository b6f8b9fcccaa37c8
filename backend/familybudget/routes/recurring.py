from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from familybudget.database import get_db
from familybudget.db_helpers import get_user_id, require_family_member
from familybudget.exceptions import ValidationError
from familybudget.schemas import (
    ProcessRecurringRequest,
    ProcessRecurringResponse,
    RecurringPreviewResponse,
    RecurringSummaryResponse,
    RecurringTransactionCreate,
    RecurringTransactionUpdate,
    RecurringTransactionWithDetails,
)
from familybudget.services.recurring_service import RecurringService

router = APIRouter()


@router.get("/family/{family_id}", response_model=List[RecurringTransactionWithDetails])
def list_recurring_transactions(
    family_id: int,
    is_active: Optional[bool] = Query(None),
    db: Session = Depends(get_db)
):
    """List recurring transactions of a family, soonest first."""
    require_family_member(db, family_id, get_user_id())
    return RecurringService(db).list_rules(family_id, is_active=is_active)


@router.get("/family/{family_id}/summary", response_model=RecurringSummaryResponse)
def get_recurring_summary(family_id: int, db: Session = Depends(get_db)):
    """Monthly and yearly equivalents of the family's active recurring transactions."""
    require_family_member(db, family_id, get_user_id())
    return RecurringService(db).summarize_rules(family_id)


@router.post("/process", response_model=ProcessRecurringResponse)
def process_recurring_transactions(
    request: ProcessRecurringRequest,
    db: Session = Depends(get_db)
):
    """
    Create ledger transactions for every due recurring transaction of a family.

    `as_of` defaults to today's date. Each due rule creates one transaction
    and advances by one period per call.

    Example response:
    ```json
    {
        "message": "Created 2 transactions",
        "createdCount": 2,
        "createdTransactionIds": [41, 42],
        "errors": []
    }
    ```
    """
    require_family_member(db, request.family_id, get_user_id())
    as_of = request.as_of or date.today()
    result = RecurringService(db).process_due_rules(request.family_id, as_of)
    return ProcessRecurringResponse(
        message=f"Created {result.created_count} transactions",
        created_count=result.created_count,
        created_transaction_ids=result.created_transaction_ids,
        errors=result.errors,
    )


@router.get("/{rule_id}", response_model=RecurringTransactionWithDetails)
def get_recurring_transaction(rule_id: int, db: Session = Depends(get_db)):
    """Get a single recurring transaction by ID."""
    service = RecurringService(db)
    rule = service.get_rule(rule_id)
    require_family_member(db, rule.family_id, get_user_id())
    return service.with_details(rule)


@router.get("/{rule_id}/preview", response_model=RecurringPreviewResponse)
def preview_recurring_transaction(
    rule_id: int,
    count: int = Query(5, ge=1, le=60),
    db: Session = Depends(get_db)
):
    """Upcoming occurrence dates of a recurring transaction."""
    service = RecurringService(db)
    rule = service.get_rule(rule_id)
    require_family_member(db, rule.family_id, get_user_id())
    return RecurringPreviewResponse(
        recurring_transaction_id=rule.id,
        occurrences=service.preview_rule(rule, count),
    )


@router.post("/", response_model=RecurringTransactionWithDetails, status_code=201)
def create_recurring_transaction(
    recurring: RecurringTransactionCreate,
    db: Session = Depends(get_db)
):
    """Create a recurring transaction. The first occurrence is the first date after start_date."""
    user_id = get_user_id()
    if recurring.family_id is None:
        raise ValidationError("Required fields missing: family_id")
    require_family_member(db, recurring.family_id, user_id)
    service = RecurringService(db)
    rule = service.create_rule(user_id, recurring)
    return service.with_details(rule)


@router.put("/{rule_id}", response_model=RecurringTransactionWithDetails)
def update_recurring_transaction(
    rule_id: int,
    updates: RecurringTransactionUpdate,
    db: Session = Depends(get_db)
):
    """Update a recurring transaction. The next occurrence is recalculated from start_date."""
    service = RecurringService(db)
    rule = service.get_rule(rule_id)
    require_family_member(db, rule.family_id, get_user_id())
    rule = service.update_rule(rule, updates)
    return service.with_details(rule)


@router.delete("/{rule_id}", status_code=204)
def delete_recurring_transaction(rule_id: int, db: Session = Depends(get_db)):
    """Delete a recurring transaction. Transactions it created are kept."""
    service = RecurringService(db)
    rule = service.get_rule(rule_id)
    require_family_member(db, rule.family_id, get_user_id())
    service.delete_rule(rule)
    return None
