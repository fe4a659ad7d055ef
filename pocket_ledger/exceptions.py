"""
Domain exceptions.

Every failure the core reports is one of these types. They
subclass ValueError so callers that only care about "bad
input" can keep catching ValueError.
"""

from typing import Any, Dict, Optional


class PocketLedgerError(ValueError):
    """Base exception for all ledger and scheduling errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(PocketLedgerError):
    """Malformed or out-of-range input."""


class NotFoundError(PocketLedgerError):
    """Unknown id or subject."""


class ConflictError(PocketLedgerError):
    """The operation would break a referential invariant."""


class RateLimitError(PocketLedgerError):
    """A cooldown has not elapsed yet."""

    def __init__(self, message: str, retry_after: int,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.retry_after = retry_after


class ExpiredError(PocketLedgerError):
    """A verification code was used after its expiry."""


class MismatchError(PocketLedgerError):
    """A verification code did not match."""


class ParseError(PocketLedgerError):
    """Quick-input text yielded no usable transactions."""

    NO_TRANSACTIONS_FOUND = "NoTransactionsFound"

    def __init__(self, message: str, reason: str = NO_TRANSACTIONS_FOUND,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.reason = reason
