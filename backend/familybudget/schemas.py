from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Literal

TransactionType = Literal["expense", "income"]
Frequency = Literal["daily", "weekly", "monthly", "yearly"]


# Category Schemas
class CategoryBase(BaseModel):
    name: str
    category_type: TransactionType
    color: Optional[str] = None
    icon: Optional[str] = None


class CategoryCreate(CategoryBase):
    family_id: int


class CategoryResponse(CategoryBase):
    id: int
    family_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Transaction Schemas
class TransactionResponse(BaseModel):
    id: int
    family_id: int
    user_id: int
    category_id: int
    transaction_type: str
    amount: Decimal
    description: Optional[str] = None
    date: date
    currency: Optional[str] = None
    recurring_transaction_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Recurring Transaction Schemas
class RecurringTransactionCreate(BaseModel):
    """
    Required fields are optional here so that missing values reach the
    service and are reported as a single validation error.
    """
    family_id: Optional[int] = None
    category_id: Optional[int] = None
    transaction_type: Optional[TransactionType] = None
    amount: Optional[Decimal] = None
    description: Optional[str] = None
    frequency: Optional[Frequency] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    currency: Optional[str] = None


class RecurringTransactionUpdate(BaseModel):
    category_id: Optional[int] = None
    transaction_type: Optional[TransactionType] = None
    amount: Optional[Decimal] = None
    description: Optional[str] = None
    frequency: Optional[Frequency] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    is_active: Optional[bool] = None


class RecurringTransactionResponse(BaseModel):
    id: int
    family_id: int
    user_id: int
    category_id: int
    transaction_type: str
    amount: Decimal
    description: Optional[str] = None
    frequency: str
    start_date: date
    end_date: Optional[date] = None
    next_occurrence: date
    day_of_month: Optional[int] = None
    day_of_week: Optional[int] = None
    is_active: bool
    currency: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RecurringTransactionWithDetails(RecurringTransactionResponse):
    category_name: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    user_name: Optional[str] = None


class RecurringPreviewResponse(BaseModel):
    recurring_transaction_id: int
    occurrences: List[date]


class FrequencySummary(BaseModel):
    count: int
    total: Decimal
    monthly_equivalent: Decimal


class RecurringSummaryResponse(BaseModel):
    """Monthly and yearly equivalents of all active rules in a family."""
    total_active: int
    monthly_expenses: Decimal
    monthly_income: Decimal
    yearly_expenses: Decimal
    yearly_income: Decimal
    by_frequency: dict[str, FrequencySummary]


class ProcessRecurringRequest(BaseModel):
    family_id: int
    as_of: Optional[date] = None


class RuleProcessingError(BaseModel):
    rule_id: int
    error: str


class ProcessRecurringResponse(BaseModel):
    """Result of a processing run, serialized with camelCase keys."""
    message: str
    created_count: int = Field(alias="createdCount")
    created_transaction_ids: List[int] = Field(alias="createdTransactionIds")
    errors: List[RuleProcessingError] = []

    model_config = ConfigDict(populate_by_name=True)


# Notification Schemas
class NotificationResponse(BaseModel):
    id: int
    family_id: int
    user_id: Optional[int] = None
    notification_type: str
    title: str
    message: str
    read: bool
    recurring_transaction_id: Optional[int] = None
    due_date: Optional[date] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BillReminderRequest(BaseModel):
    family_id: int
    as_of: Optional[date] = None
    days_ahead: Optional[int] = Field(default=None, ge=0, le=31)


class BillReminderResponse(BaseModel):
    created_count: int
    recurring_transaction_ids: List[int]


class MarkAllReadResponse(BaseModel):
    message: str
    updated_count: int
