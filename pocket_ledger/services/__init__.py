"""Business logic services."""

from pocket_ledger.services.ledger_service import LedgerService
from pocket_ledger.services.parser_service import ParserService
from pocket_ledger.services.recurring_service import RecurringExpenseEngine
from pocket_ledger.services.savings_service import SavingsGoalEngine
from pocket_ledger.services.auth_service import AuthVerificationService

__all__ = [
    "LedgerService",
    "ParserService",
    "RecurringExpenseEngine",
    "SavingsGoalEngine",
    "AuthVerificationService",
]
