"""
Pydantic schemas for savings goals and contributions.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field

from pocket_ledger.models.enums import GoalState, GoalStatus


class GoalCreate(BaseModel):
    user_id: int
    name: str = Field(max_length=100)
    target_amount: int
    deadline: date
    # Recorded as a first contribution that no wallet pays for
    initial_amount: int = 0
    currency: str = Field(default="VND", max_length=3)
    icon: str = Field(default="piggy-bank", max_length=50)
    color: str = Field(default="#6366f1", max_length=20)


class GoalUpdate(BaseModel):
    """Partial update. Fields left as None keep their value."""
    name: str | None = Field(default=None, max_length=100)
    target_amount: int | None = None
    deadline: date | None = None
    icon: str | None = Field(default=None, max_length=50)
    color: str | None = Field(default=None, max_length=20)


class ContributionCreate(BaseModel):
    amount: int
    note: str = Field(default="", max_length=250)
    # When set, the amount is debited from this wallet
    wallet_id: int | None = None


class ContributionResponse(BaseModel):
    id: int
    goal_id: int
    amount: int
    note: str
    wallet_id: int | None
    transaction_id: int | None
    contributed_on: date
    created_at: datetime

    model_config = {"from_attributes": True}


class GoalView(BaseModel):
    """A goal with its state derived for a given day."""
    id: int
    user_id: int
    name: str
    target_amount: int
    current_amount: int
    deadline: date
    currency: str
    icon: str
    color: str
    status: GoalStatus
    state: GoalState
    days_remaining: int
    progress_percent: float
    remaining_amount: int
    monthly_needed: int
    completed_at: datetime | None


class GoalDetail(GoalView):
    contributions: list[ContributionResponse]
