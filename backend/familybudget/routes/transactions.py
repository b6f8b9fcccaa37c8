from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from familybudget.database import get_db
from familybudget.db_helpers import get_user_id, require_family_member
from familybudget.models import Transaction
from familybudget.schemas import TransactionResponse

router = APIRouter()


@router.get("/family/{family_id}", response_model=List[TransactionResponse])
def list_transactions(
    family_id: int,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    recurring_transaction_id: Optional[int] = Query(None),
    db: Session = Depends(get_db)
):
    """List ledger transactions of a family, newest first."""
    require_family_member(db, family_id, get_user_id())
    query = db.query(Transaction).filter(Transaction.family_id == family_id)
    if start_date:
        query = query.filter(Transaction.date >= start_date)
    if end_date:
        query = query.filter(Transaction.date <= end_date)
    if recurring_transaction_id is not None:
        query = query.filter(Transaction.recurring_transaction_id == recurring_transaction_id)
    return query.order_by(Transaction.date.desc(), Transaction.id.desc()).all()
