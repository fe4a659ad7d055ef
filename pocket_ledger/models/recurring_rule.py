"""
Recurring expense rule model.

A template that turns into a concrete expense transaction
each time its next_due_on date is reached. next_due_on only
ever moves forward; last_materialized_on records the last
due date that produced a transaction, which is what keeps a
rule from firing twice for the same date.
"""

from datetime import date, datetime

from sqlalchemy import (
    String, Boolean, Date, DateTime, BigInteger, Integer, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pocket_ledger.clock import utcnow
from pocket_ledger.models.base import Base
from pocket_ledger.models.enums import Frequency


class RecurringExpenseRule(Base):
    __tablename__ = "recurring_expense_rules"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    wallet_id: Mapped[int] = mapped_column(
        ForeignKey("wallets.id"), nullable=False, index=True
    )
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # Unsigned; materialized as an expense
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    frequency: Mapped[Frequency] = mapped_column(
        SAEnum(Frequency, name="frequency_enum", create_constraint=True),
        nullable=False,
        default=Frequency.MONTHLY,
    )
    interval: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Day of month monthly/yearly rules return to after a short month
    anchor_day: Mapped[int] = mapped_column(Integer, nullable=False)
    # None: the reminder horizon decides when the rule is due soon
    reminder_days_before: Mapped[int | None] = mapped_column(
        Integer, nullable=True, default=None
    )
    note: Mapped[str] = mapped_column(String(250), nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    next_due_on: Mapped[date] = mapped_column(
        Date, nullable=False, index=True
    )
    last_materialized_on: Mapped[date | None] = mapped_column(
        Date, nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    wallet: Mapped["Wallet"] = relationship()
    category: Mapped["Category"] = relationship()

    def __repr__(self) -> str:
        return (
            f"<RecurringExpenseRule {self.name} {self.amount} "
            f"{self.frequency.value} next={self.next_due_on}>"
        )
