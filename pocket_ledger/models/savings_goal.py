"""
Savings goal and contribution models.

Only the terminal COMPLETED status is stored on the goal.
Whether an active goal is urgent or overdue depends on the
day it is looked at, so that is derived on every read by
the SavingsGoalEngine and never persisted.
"""

from datetime import date, datetime

from sqlalchemy import (
    String, Date, DateTime, BigInteger, Integer, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pocket_ledger.clock import utcnow
from pocket_ledger.models.base import Base
from pocket_ledger.models.enums import GoalStatus


class SavingsGoal(Base):
    __tablename__ = "savings_goals"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    target_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    current_amount: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    deadline: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[GoalStatus] = mapped_column(
        SAEnum(GoalStatus, name="goal_status_enum", create_constraint=True),
        nullable=False,
        default=GoalStatus.ACTIVE,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default="VND"
    )
    # Display only
    icon: Mapped[str] = mapped_column(
        String(50), nullable=False, default="piggy-bank"
    )
    color: Mapped[str] = mapped_column(
        String(20), nullable=False, default="#6366f1"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    contributions: Mapped[list["GoalContribution"]] = relationship(
        back_populates="goal",
        cascade="all, delete-orphan",
        order_by="GoalContribution.id",
    )

    def __repr__(self) -> str:
        return (
            f"<SavingsGoal {self.name} {self.current_amount}/"
            f"{self.target_amount} ({self.status.value})>"
        )


class GoalContribution(Base):
    """One deposit into a savings goal, optionally funded by a wallet."""

    __tablename__ = "goal_contributions"

    id: Mapped[int] = mapped_column(primary_key=True)
    goal_id: Mapped[int] = mapped_column(
        ForeignKey("savings_goals.id"), nullable=False, index=True
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    note: Mapped[str] = mapped_column(String(250), nullable=False, default="")
    wallet_id: Mapped[int | None] = mapped_column(
        ForeignKey("wallets.id"), nullable=True
    )
    transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("transactions.id", ondelete="SET NULL"), nullable=True
    )
    contributed_on: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    goal: Mapped["SavingsGoal"] = relationship(back_populates="contributions")
