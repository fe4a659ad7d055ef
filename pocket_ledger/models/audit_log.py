"""
Audit trail of ledger and verification events.

Rows are written by services.audit.record_event in the same
unit of work as the change they describe.
"""

from datetime import datetime

from sqlalchemy import String, DateTime, Text, Integer
from sqlalchemy.orm import Mapped, mapped_column

from pocket_ledger.clock import utcnow
from pocket_ledger.models.base import Base


class AuditLog(Base):
    """
    One recorded event, e.g. "transaction.created".

    Append-only. `wallet_id` is copied from the event payload
    when present and is a plain column, not a foreign key, so
    the trail of a deleted wallet survives the wallet.
    """

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    event_type: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True
    )
    wallet_id: Mapped[int | None] = mapped_column(
        Integer, nullable=True, index=True
    )
    # JSON object with the event's fields
    details: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )

    def __repr__(self):
        return f"<AuditLog {self.event_type} wallet={self.wallet_id}>"
