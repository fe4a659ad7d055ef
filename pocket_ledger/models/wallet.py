"""
Wallet model.

A wallet is where a user's money sits: cash, a bank card,
an e-wallet. Its balance is cached on the row and kept equal
to the sum of its transactions' signed amounts by the
LedgerService, which is the only writer of this column.
"""

from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, BigInteger, Integer
from sqlalchemy.orm import Mapped, mapped_column

from pocket_ledger.clock import utcnow
from pocket_ledger.models.base import Base


class Wallet(Base):
    __tablename__ = "wallets"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default="VND"
    )
    # Smallest currency unit, signed
    balance: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    is_default: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<Wallet {self.name} {self.balance} {self.currency}>"
