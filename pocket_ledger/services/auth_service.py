"""
Verification code service.

Issues and checks the six-digit codes used to confirm an
email address after registration and as the second step of a
login. Delivering the code (email, SMS) is the caller's job;
this service only decides what the code is and whether a
submitted code is good.

Lifecycle per (subject, purpose):
    none -> issued -> verified | expired | superseded
"""

import hmac
import logging
import math
import secrets
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pocket_ledger.config import Settings, get_settings
from pocket_ledger.exceptions import (
    ValidationError,
    NotFoundError,
    RateLimitError,
    ExpiredError,
    MismatchError,
)
from pocket_ledger.models.enums import ChallengePurpose, ChallengeState
from pocket_ledger.models.verification_challenge import VerificationChallenge
from pocket_ledger.services.audit import record_event

log = logging.getLogger(__name__)

CODE_LENGTH = 6


def generate_code() -> str:
    """Six random ASCII digits, leading zeros kept."""
    return f"{secrets.randbelow(10 ** CODE_LENGTH):0{CODE_LENGTH}d}"


def normalize_subject(subject: str) -> str:
    cleaned = (subject or "").strip().lower()
    if "@" not in cleaned or cleaned.startswith("@") or cleaned.endswith("@"):
        raise ValidationError(f"Invalid email address '{subject}'")
    return cleaned


class AuthVerificationService:

    def __init__(self, db: Session, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self.settings.OTP_TTL_SECONDS)

    @property
    def cooldown(self) -> timedelta:
        return timedelta(seconds=self.settings.OTP_RESEND_COOLDOWN_SECONDS)

    def _latest(
        self, subject: str, purpose: ChallengePurpose
    ) -> VerificationChallenge | None:
        return self.db.execute(
            select(VerificationChallenge)
            .where(
                VerificationChallenge.subject == subject,
                VerificationChallenge.purpose == purpose,
            )
            .order_by(
                VerificationChallenge.issued_at.desc(),
                VerificationChallenge.id.desc(),
            )
            .limit(1)
        ).scalar_one_or_none()

    def _outstanding(
        self, subject: str, purpose: ChallengePurpose
    ) -> list[VerificationChallenge]:
        challenges = self.db.execute(
            select(VerificationChallenge).where(
                VerificationChallenge.subject == subject,
                VerificationChallenge.purpose == purpose,
                VerificationChallenge.state == ChallengeState.ISSUED,
            )
        ).scalars().all()
        return list(challenges)

    def issue(
        self, subject: str, purpose: ChallengePurpose, now: datetime
    ) -> VerificationChallenge:
        """
        Issue a new code for (subject, purpose).

        Fails with RateLimitError when the previous code for the
        same pair was issued less than the cooldown ago. Any
        code still outstanding is superseded (or marked expired
        if its time already ran out).
        """
        subject = normalize_subject(subject)

        latest = self._latest(subject, purpose)
        if latest is not None:
            elapsed = now - latest.issued_at
            if elapsed < self.cooldown:
                retry_after = math.ceil(
                    (self.cooldown - elapsed).total_seconds()
                )
                raise RateLimitError(
                    f"A code was sent recently; retry in {retry_after}s",
                    retry_after=retry_after,
                )

        for previous in self._outstanding(subject, purpose):
            previous.state = (
                ChallengeState.EXPIRED if now > previous.expires_at
                else ChallengeState.SUPERSEDED
            )
        self.db.flush()

        challenge = VerificationChallenge(
            subject=subject,
            purpose=purpose,
            code=generate_code(),
            state=ChallengeState.ISSUED,
            issued_at=now,
            expires_at=now + self.ttl,
        )
        self.db.add(challenge)
        try:
            self.db.flush()
        except IntegrityError:
            # Another request issued a code for this pair in the meantime
            retry_after = math.ceil(self.cooldown.total_seconds())
            raise RateLimitError(
                f"A code was sent recently; retry in {retry_after}s",
                retry_after=retry_after,
            )

        record_event(
            self.db, "challenge.issued",
            subject=subject, purpose=purpose.value, challenge_id=challenge.id,
        )
        self.db.flush()
        log.info(f"Issued {purpose.value} challenge {challenge.id} for {subject}")
        return challenge

    def verify(
        self,
        subject: str,
        purpose: ChallengePurpose,
        code: str,
        now: datetime,
    ) -> VerificationChallenge:
        """
        Check a submitted code against the outstanding challenge.

        A challenge can be verified once; after that there is
        no outstanding challenge and NotFoundError is raised.
        """
        subject = normalize_subject(subject)

        challenge = self.db.execute(
            select(VerificationChallenge)
            .where(
                VerificationChallenge.subject == subject,
                VerificationChallenge.purpose == purpose,
                VerificationChallenge.state == ChallengeState.ISSUED,
            )
            .order_by(VerificationChallenge.id.desc())
            .limit(1)
        ).scalar_one_or_none()

        if challenge is None:
            raise NotFoundError(
                f"No pending {purpose.value} challenge for {subject}"
            )
        if now > challenge.expires_at:
            raise ExpiredError(
                f"The {purpose.value} code for {subject} has expired",
                details={"expired_at": challenge.expires_at.isoformat()},
            )
        submitted = (code or "").strip().encode("utf-8")
        if not hmac.compare_digest(challenge.code.encode("ascii"), submitted):
            raise MismatchError("Verification code does not match")

        challenge.state = ChallengeState.VERIFIED
        challenge.consumed_at = now
        record_event(
            self.db, "challenge.verified",
            subject=subject, purpose=purpose.value, challenge_id=challenge.id,
        )
        self.db.flush()
        log.info(f"Verified {purpose.value} challenge {challenge.id}")
        return challenge
