"""
Shared enumerations for database models.

Using Python enums mapped to database enums ensures that
only valid values can be stored. There are no numeric
type codes anywhere in the ledger.
"""

import enum


class TransactionKind(str, enum.Enum):
    """Direction of money relative to a wallet."""
    INCOME = "income"
    EXPENSE = "expense"

    def sign(self, magnitude: int) -> int:
        """Signed amount for an unsigned magnitude."""
        return magnitude if self is TransactionKind.INCOME else -magnitude


class CategoryScope(str, enum.Enum):
    """Which categories a listing returns."""
    SYSTEM = "system"
    USER = "user"
    ALL = "all"


class Frequency(str, enum.Enum):
    """Recurrence unit of a recurring expense rule."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class ReminderState(str, enum.Enum):
    """Urgency tag of an upcoming recurring expense."""
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"
    SCHEDULED = "scheduled"


class GoalStatus(str, enum.Enum):
    """Stored lifecycle of a savings goal. COMPLETED is terminal."""
    ACTIVE = "active"
    COMPLETED = "completed"


class GoalState(str, enum.Enum):
    """Display state derived from amounts and deadline on every read."""
    ACTIVE = "active"
    URGENT = "urgent"
    OVERDUE = "overdue"
    COMPLETED = "completed"


class ChallengePurpose(str, enum.Enum):
    EMAIL_CONFIRM = "email-confirm"
    TWO_FACTOR_LOGIN = "2fa-login"


class ChallengeState(str, enum.Enum):
    """Lifecycle of a verification challenge."""
    ISSUED = "issued"
    VERIFIED = "verified"
    EXPIRED = "expired"
    SUPERSEDED = "superseded"
