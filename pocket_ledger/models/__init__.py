"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from pocket_ledger.models.base import Base
from pocket_ledger.models.enums import (
    TransactionKind,
    CategoryScope,
    Frequency,
    ReminderState,
    GoalStatus,
    GoalState,
    ChallengePurpose,
    ChallengeState,
)
from pocket_ledger.models.audit_log import AuditLog
from pocket_ledger.models.wallet import Wallet
from pocket_ledger.models.category import Category
from pocket_ledger.models.transaction import Transaction
from pocket_ledger.models.recurring_rule import RecurringExpenseRule
from pocket_ledger.models.savings_goal import SavingsGoal, GoalContribution
from pocket_ledger.models.verification_challenge import VerificationChallenge

__all__ = [
    "Base",
    "TransactionKind",
    "CategoryScope",
    "Frequency",
    "ReminderState",
    "GoalStatus",
    "GoalState",
    "ChallengePurpose",
    "ChallengeState",
    "AuditLog",
    "Wallet",
    "Category",
    "Transaction",
    "RecurringExpenseRule",
    "SavingsGoal",
    "GoalContribution",
    "VerificationChallenge",
]
