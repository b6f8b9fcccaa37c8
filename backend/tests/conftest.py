"""
Shared fixtures: an in-memory SQLite database and a seeded family.
"""
import os
import sys
from dataclasses import dataclass

# Must be set before familybudget reads its settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_TABLES"] = "true"

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from familybudget.database import Base, SessionLocal, engine  # noqa: E402
from familybudget.db_helpers import REQUEST_USER_HEADER  # noqa: E402
from familybudget.models import Category, Family, FamilyMember, User  # noqa: E402


@dataclass
class SeededFamily:
    family_id: int
    user_id: int
    outsider_id: int
    expense_category_id: int
    income_category_id: int


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def family(db) -> SeededFamily:
    owner = User(email="owner@example.com", name="Owner")
    outsider = User(email="outsider@example.com", name="Outsider")
    household = Family(name="Test Family", currency="USD")
    db.add_all([owner, outsider, household])
    db.flush()

    db.add(FamilyMember(family_id=household.id, user_id=owner.id, role="owner"))
    rent = Category(family_id=household.id, name="Rent", category_type="expense")
    salary = Category(family_id=household.id, name="Salary", category_type="income")
    db.add_all([rent, salary])
    db.commit()

    return SeededFamily(
        family_id=household.id,
        user_id=owner.id,
        outsider_id=outsider.id,
        expense_category_id=rent.id,
        income_category_id=salary.id,
    )


@pytest.fixture
def client(db):
    from familybudget.main import app

    with TestClient(app) as test_client:
        yield test_client


def auth_headers(user_id: int) -> dict[str, str]:
    return {REQUEST_USER_HEADER: str(user_id)}
