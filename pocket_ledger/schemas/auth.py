"""
Pydantic schemas for verification challenges.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from pocket_ledger.models.enums import ChallengePurpose, ChallengeState


class ChallengeIssueRequest(BaseModel):
    subject: str = Field(max_length=255)
    purpose: ChallengePurpose


class ChallengeVerifyRequest(BaseModel):
    subject: str = Field(max_length=255)
    purpose: ChallengePurpose
    code: str = Field(max_length=12)


class ChallengeResponse(BaseModel):
    """
    Public view of a challenge. The code is only echoed back
    when the application runs with DEBUG enabled.
    """
    id: int
    subject: str
    purpose: ChallengePurpose
    state: ChallengeState
    issued_at: datetime
    expires_at: datetime
    debug_code: str | None = None

    model_config = {"from_attributes": True}
