"""
Transaction model.

A single income or expense against a wallet. The amount is
stored once, already signed: positive for income, negative
for expense. Nothing re-derives the sign from the kind at
read time.
"""

from datetime import date, datetime

from sqlalchemy import (
    String, Date, DateTime, BigInteger, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pocket_ledger.clock import utcnow
from pocket_ledger.models.base import Base
from pocket_ledger.models.enums import TransactionKind


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(primary_key=True)
    wallet_id: Mapped[int] = mapped_column(
        ForeignKey("wallets.id"), nullable=False, index=True
    )
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id"), nullable=False, index=True
    )
    kind: Mapped[TransactionKind] = mapped_column(
        SAEnum(
            TransactionKind,
            name="transaction_kind_enum",
            create_constraint=True,
        ),
        nullable=False,
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    occurred_on: Mapped[date] = mapped_column(
        Date, nullable=False, index=True
    )
    note: Mapped[str] = mapped_column(
        String(250), nullable=False, default=""
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    wallet: Mapped["Wallet"] = relationship()
    category: Mapped["Category"] = relationship()

    @property
    def magnitude(self) -> int:
        return abs(self.amount)

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.kind.value} {self.amount} "
            f"on {self.occurred_on}>"
        )
