"""
SQLAlchemy models for the family budget schema.
Every financial row belongs to a family; users reach it through family membership.
"""
from datetime import datetime
from sqlalchemy import (
    Column,
    String,
    Boolean,
    Date,
    DateTime,
    Numeric,
    Text,
    Integer,
    ForeignKey,
    Index,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from familybudget.database import Base


class User(Base):
    """
    Minimal user model for foreign key relationships.
    Credentials and sessions are handled upstream of this service.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    memberships = relationship("FamilyMember", back_populates="user", cascade="all, delete-orphan")


class Family(Base):
    __tablename__ = "families"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    currency = Column(String(3), default="USD")
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    members = relationship("FamilyMember", back_populates="family", cascade="all, delete-orphan")
    categories = relationship("Category", back_populates="family", cascade="all, delete-orphan")
    transactions = relationship("Transaction", back_populates="family", cascade="all, delete-orphan")
    recurring_transactions = relationship("RecurringTransaction", back_populates="family", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="family", cascade="all, delete-orphan")


class FamilyMember(Base):
    """Join table between families and users."""
    __tablename__ = "family_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    family_id = Column(Integer, ForeignKey("families.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(20), default="member")  # owner, admin, member
    joined_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    family = relationship("Family", back_populates="members")
    user = relationship("User", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("family_id", "user_id", name="family_members_family_user"),
    )


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    family_id = Column(Integer, ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    category_type = Column(String(20), nullable=False)  # expense, income
    color = Column(String(7), default="#3B82F6")  # Hex color
    icon = Column(String(50), default="💰")
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    family = relationship("Family", back_populates="categories")

    __table_args__ = (
        CheckConstraint("category_type IN ('expense', 'income')", name="categories_type_check"),
    )


class Transaction(Base):
    """
    Ledger entry. Rows created by recurring processing keep a link to their rule.
    """
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    family_id = Column(Integer, ForeignKey("families.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False)
    transaction_type = Column(String(20), nullable=False)  # expense, income
    amount = Column(Numeric(10, 2), nullable=False)
    description = Column(Text)
    date = Column(Date, nullable=False)
    currency = Column(String(3), default="USD")
    recurring_transaction_id = Column(
        Integer,
        ForeignKey("recurring_transactions.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    family = relationship("Family", back_populates="transactions")
    user = relationship("User")
    category = relationship("Category")
    recurring_transaction = relationship("RecurringTransaction", back_populates="linked_transactions")

    __table_args__ = (
        Index("idx_transactions_family_date", "family_id", "date"),
        Index("idx_transactions_recurring", "recurring_transaction_id"),
        CheckConstraint("transaction_type IN ('expense', 'income')", name="transactions_type_check"),
    )


class RecurringTransaction(Base):
    """
    Template for generating future ledger transactions.
    next_occurrence is advanced one period every time the rule is materialized.
    """
    __tablename__ = "recurring_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    family_id = Column(Integer, ForeignKey("families.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False)
    transaction_type = Column(String(20), nullable=False)  # expense, income
    amount = Column(Numeric(10, 2), nullable=False)
    description = Column(Text, nullable=True)
    frequency = Column(String(20), nullable=False)  # daily, weekly, monthly, yearly
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    next_occurrence = Column(Date, nullable=False)
    day_of_month = Column(Integer, nullable=True)  # 1-31, monthly only
    day_of_week = Column(Integer, nullable=True)  # 0=Sunday..6=Saturday, weekly only
    is_active = Column(Boolean, default=True, nullable=False)
    currency = Column(String(3), default="USD")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    family = relationship("Family", back_populates="recurring_transactions")
    user = relationship("User")
    category = relationship("Category")
    linked_transactions = relationship("Transaction", back_populates="recurring_transaction")

    __table_args__ = (
        Index("idx_recurring_transactions_due", "family_id", "is_active", "next_occurrence"),
        CheckConstraint("transaction_type IN ('expense', 'income')", name="recurring_type_check"),
        CheckConstraint(
            "frequency IN ('daily', 'weekly', 'monthly', 'yearly')",
            name="recurring_frequency_check",
        ),
    )


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    family_id = Column(Integer, ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    notification_type = Column(String(20), nullable=False)  # bill_reminder, budget_alert, goal_milestone
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, default=False, nullable=False)
    recurring_transaction_id = Column(
        Integer,
        ForeignKey("recurring_transactions.id", ondelete="CASCADE"),
        nullable=True,
    )
    due_date = Column(Date, nullable=True)  # Occurrence a bill reminder refers to
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    family = relationship("Family", back_populates="notifications")

    __table_args__ = (
        Index("idx_notifications_reminder", "recurring_transaction_id", "due_date"),
        CheckConstraint(
            "notification_type IN ('bill_reminder', 'budget_alert', 'goal_milestone')",
            name="notifications_type_check",
        ),
    )
