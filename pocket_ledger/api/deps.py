"""
Shared API dependencies and error mapping.

Endpoints take "now" from get_clock() so tests can freeze
time with app.dependency_overrides, the same way they swap
the database session.
"""

from fastapi import HTTPException

from pocket_ledger.clock import SystemClock
from pocket_ledger.exceptions import (
    PocketLedgerError,
    NotFoundError,
    ConflictError,
    RateLimitError,
)

_clock = SystemClock()

# Everything not listed is a client input problem -> 400
STATUS_BY_ERROR = {
    NotFoundError: 404,
    ConflictError: 409,
    RateLimitError: 429,
}


def get_clock() -> SystemClock:
    return _clock


def http_error(error: PocketLedgerError) -> HTTPException:
    """Translate a domain error into the matching HTTP error."""
    status_code = 400
    for error_type, code in STATUS_BY_ERROR.items():
        if isinstance(error, error_type):
            status_code = code
            break

    headers = None
    if isinstance(error, RateLimitError):
        headers = {"Retry-After": str(error.retry_after)}

    return HTTPException(
        status_code=status_code, detail=error.message, headers=headers
    )
