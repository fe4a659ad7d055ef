"""
Verification challenge endpoints.

Used by registration (email confirmation) and login (second
factor). Sending the code to the user is handled elsewhere.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pocket_ledger.api.deps import get_clock, http_error
from pocket_ledger.clock import SystemClock
from pocket_ledger.config import get_settings
from pocket_ledger.exceptions import PocketLedgerError
from pocket_ledger.models.base import get_db
from pocket_ledger.services.auth_service import AuthVerificationService
from pocket_ledger.schemas.auth import (
    ChallengeIssueRequest,
    ChallengeVerifyRequest,
    ChallengeResponse,
)

router = APIRouter(prefix="/auth", tags=["Verification"])


@router.post("/challenges", response_model=ChallengeResponse, status_code=201)
def issue_challenge(
    request: ChallengeIssueRequest,
    db: Session = Depends(get_db),
    clock: SystemClock = Depends(get_clock),
):
    """
    Issue a new code. Returns 429 with Retry-After when the
    previous code for the same purpose was sent under a
    minute ago.
    """
    service = AuthVerificationService(db)
    try:
        challenge = service.issue(request.subject, request.purpose, clock.now())
        db.commit()
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)

    response = ChallengeResponse.model_validate(challenge)
    if get_settings().DEBUG:
        response.debug_code = challenge.code
    return response


@router.post("/challenges/verify", response_model=ChallengeResponse)
def verify_challenge(
    request: ChallengeVerifyRequest,
    db: Session = Depends(get_db),
    clock: SystemClock = Depends(get_clock),
):
    service = AuthVerificationService(db)
    try:
        challenge = service.verify(
            request.subject, request.purpose, request.code, clock.now()
        )
        db.commit()
        return challenge
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)
