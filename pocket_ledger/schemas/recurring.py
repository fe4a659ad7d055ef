"""
Pydantic schemas for recurring expense rules and reminders.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field

from pocket_ledger.models.enums import Frequency, ReminderState


class RecurringRuleCreate(BaseModel):
    wallet_id: int
    category_id: int
    name: str = Field(max_length=100)
    amount: int
    frequency: Frequency = Frequency.MONTHLY
    interval: int = 1
    first_due_on: date
    # Defaults to the day of first_due_on
    anchor_day: int | None = Field(default=None, ge=1, le=31)
    # Unset: due soon anywhere within the reminder horizon
    reminder_days_before: int | None = None
    note: str = Field(default="", max_length=250)


class RecurringRuleUpdate(BaseModel):
    """Partial update. Fields left as None keep their value."""
    category_id: int | None = None
    name: str | None = Field(default=None, max_length=100)
    amount: int | None = None
    frequency: Frequency | None = None
    interval: int | None = None
    next_due_on: date | None = None
    reminder_days_before: int | None = None
    note: str | None = Field(default=None, max_length=250)
    is_active: bool | None = None


class RecurringRuleResponse(BaseModel):
    id: int
    user_id: int
    wallet_id: int
    category_id: int
    name: str
    amount: int
    frequency: Frequency
    interval: int
    anchor_day: int
    reminder_days_before: int | None
    note: str
    is_active: bool
    next_due_on: date
    last_materialized_on: date | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ReminderResponse(BaseModel):
    """An active rule due within the reminder horizon, or overdue."""
    rule_id: int
    name: str
    amount: int
    wallet_id: int
    category_id: int
    due_on: date
    days_until_due: int
    state: ReminderState
