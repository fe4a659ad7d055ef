"""
Category model.

System categories (user_id IS NULL) are seed data shared by
everyone; user categories belong to exactly one user. The
kind of a category never changes after creation.
"""

from datetime import datetime

from sqlalchemy import String, DateTime, Integer, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from pocket_ledger.clock import utcnow
from pocket_ledger.models.base import Base
from pocket_ledger.models.enums import TransactionKind


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int | None] = mapped_column(
        Integer, nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    kind: Mapped[TransactionKind] = mapped_column(
        SAEnum(
            TransactionKind,
            name="transaction_kind_enum",
            create_constraint=True,
        ),
        nullable=False,
    )
    icon: Mapped[str] = mapped_column(
        String(50), nullable=False, default="tag-outline"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    @property
    def is_system(self) -> bool:
        return self.user_id is None

    def visible_to(self, user_id: int) -> bool:
        """System categories are visible to all users."""
        return self.user_id is None or self.user_id == user_id

    def __repr__(self) -> str:
        return f"<Category {self.name} ({self.kind.value})>"
