from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from familybudget.database import get_db
from familybudget.db_helpers import get_user_id, require_family_member
from familybudget.models import Category
from familybudget.schemas import CategoryCreate, CategoryResponse

router = APIRouter()


@router.get("/family/{family_id}", response_model=List[CategoryResponse])
def list_categories(family_id: int, db: Session = Depends(get_db)):
    """List all categories of a family."""
    require_family_member(db, family_id, get_user_id())
    return db.query(Category).filter(Category.family_id == family_id).order_by(Category.name).all()


@router.post("/", response_model=CategoryResponse, status_code=201)
def create_category(category: CategoryCreate, db: Session = Depends(get_db)):
    """Create a new category."""
    require_family_member(db, category.family_id, get_user_id())
    category_data = category.model_dump(exclude_none=True)
    db_category = Category(**category_data)
    db.add(db_category)
    db.commit()
    db.refresh(db_category)
    return db_category
