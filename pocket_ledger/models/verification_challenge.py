"""
Verification challenge model.

A six-digit code sent to an email address, either to confirm
the address after registration or as the second step of a
login. At most one challenge per (subject, purpose) is in the
ISSUED state, enforced by a partial unique index; issuing again
supersedes the previous one.
"""

from datetime import datetime

from sqlalchemy import String, DateTime, Enum as SAEnum, Index, text
from sqlalchemy.orm import Mapped, mapped_column

from pocket_ledger.clock import utcnow
from pocket_ledger.models.base import Base
from pocket_ledger.models.enums import ChallengePurpose, ChallengeState


class VerificationChallenge(Base):
    __tablename__ = "verification_challenges"
    __table_args__ = (
        Index("ix_challenge_subject_purpose", "subject", "purpose"),
        # Enum columns store member names
        Index(
            "uq_challenge_one_issued",
            "subject",
            "purpose",
            unique=True,
            sqlite_where=text("state = 'ISSUED'"),
            postgresql_where=text("state = 'ISSUED'"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    purpose: Mapped[ChallengePurpose] = mapped_column(
        SAEnum(
            ChallengePurpose,
            name="challenge_purpose_enum",
            create_constraint=True,
        ),
        nullable=False,
    )
    code: Mapped[str] = mapped_column(String(6), nullable=False)
    state: Mapped[ChallengeState] = mapped_column(
        SAEnum(
            ChallengeState,
            name="challenge_state_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=ChallengeState.ISSUED,
    )
    issued_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    consumed_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        # Never include the code
        return (
            f"<VerificationChallenge {self.subject} "
            f"{self.purpose.value} ({self.state.value})>"
        )
