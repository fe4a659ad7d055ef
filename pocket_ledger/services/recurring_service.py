"""
Recurring expense engine.

Keeps the schedule of recurring expenses and turns due rules
into real expense transactions through the LedgerService.

Rules:
1. Only check_due() creates transactions; reading reminders
   never does
2. next_due_on advances from the previous due date, never
   from "now", so the schedule does not drift
3. A rule produces at most one transaction per due date
4. A rule's due date only advances once its transaction has
   been written in the same unit of work
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from pocket_ledger.config import Settings, get_settings
from pocket_ledger.exceptions import (
    PocketLedgerError,
    ValidationError,
    NotFoundError,
)
from pocket_ledger.models.enums import Frequency, ReminderState, TransactionKind
from pocket_ledger.models.recurring_rule import RecurringExpenseRule
from pocket_ledger.models.transaction import Transaction
from pocket_ledger.schemas.ledger import TransactionCreate
from pocket_ledger.schemas.recurring import (
    RecurringRuleCreate,
    RecurringRuleUpdate,
    ReminderResponse,
)
from pocket_ledger.services.audit import record_event
from pocket_ledger.services.ledger_service import LedgerService, MIN_NAME_LENGTH

log = logging.getLogger(__name__)


def add_months(start: date, months: int, anchor_day: int) -> date:
    """
    Move a date by whole months, landing on anchor_day or on
    the last day of the month when the month is shorter.
    """
    index = start.year * 12 + (start.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(anchor_day, last_day))


def next_occurrence(
    due: date, frequency: Frequency, interval: int, anchor_day: int
) -> date:
    """The due date one recurrence period after `due`."""
    if frequency == Frequency.DAILY:
        return due + timedelta(days=interval)
    if frequency == Frequency.WEEKLY:
        return due + timedelta(weeks=interval)
    if frequency == Frequency.MONTHLY:
        return add_months(due, interval, anchor_day)
    return add_months(due, 12 * interval, anchor_day)


@dataclass
class DueRunResult:
    """Outcome of one check_due() pass."""
    created: list[Transaction] = field(default_factory=list)
    # rule id -> error message
    failed: dict[int, str] = field(default_factory=dict)


class RecurringExpenseEngine:

    def __init__(
        self,
        db: Session,
        ledger: LedgerService | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.ledger = ledger or LedgerService(db, self.settings)

    # --- Rule management ---

    def _validate(self, name: str, amount: int, interval: int,
                  reminder_days_before: int | None) -> str:
        cleaned = (name or "").strip()
        if len(cleaned) < MIN_NAME_LENGTH:
            raise ValidationError(
                f"Rule name must be at least {MIN_NAME_LENGTH} characters"
            )
        if amount <= 0:
            raise ValidationError(f"Amount must be positive, got {amount}")
        if interval < 1:
            raise ValidationError(f"Interval must be at least 1, got {interval}")
        if reminder_days_before is not None and reminder_days_before < 0:
            raise ValidationError("Reminder days cannot be negative")
        return cleaned

    def create_rule(self, request: RecurringRuleCreate) -> RecurringExpenseRule:
        """Create an active rule whose first due date is first_due_on."""
        name = self._validate(
            request.name, request.amount, request.interval,
            request.reminder_days_before,
        )
        wallet = self.ledger.get_wallet(request.wallet_id)
        self.ledger.resolve_category(
            wallet.user_id, request.category_id, TransactionKind.EXPENSE
        )

        rule = RecurringExpenseRule(
            user_id=wallet.user_id,
            wallet_id=wallet.id,
            category_id=request.category_id,
            name=name,
            amount=request.amount,
            frequency=request.frequency,
            interval=request.interval,
            anchor_day=request.anchor_day or request.first_due_on.day,
            reminder_days_before=request.reminder_days_before,
            note=request.note.strip(),
            is_active=True,
            next_due_on=request.first_due_on,
        )
        self.db.add(rule)
        self.db.flush()
        log.info(f"Recurring rule {rule.id} created, first due {rule.next_due_on}")
        return rule

    def get_rule(self, rule_id: int) -> RecurringExpenseRule:
        rule = self.db.get(RecurringExpenseRule, rule_id)
        if not rule:
            raise NotFoundError(f"Recurring rule {rule_id} not found")
        return rule

    def list_rules(
        self, user_id: int, active: bool | None = None
    ) -> list[RecurringExpenseRule]:
        query = select(RecurringExpenseRule).where(
            RecurringExpenseRule.user_id == user_id
        )
        if active is not None:
            query = query.where(RecurringExpenseRule.is_active == active)
        rules = self.db.execute(
            query.order_by(
                RecurringExpenseRule.next_due_on, RecurringExpenseRule.id
            )
        ).scalars().all()
        return list(rules)

    def update_rule(
        self, rule_id: int, request: RecurringRuleUpdate
    ) -> RecurringExpenseRule:
        """
        Change a rule. Moving next_due_on re-anchors monthly and
        yearly rules on the new day of month.
        """
        rule = self.get_rule(rule_id)

        name = self._validate(
            request.name if request.name is not None else rule.name,
            request.amount if request.amount is not None else rule.amount,
            request.interval if request.interval is not None else rule.interval,
            (
                request.reminder_days_before
                if request.reminder_days_before is not None
                else rule.reminder_days_before
            ),
        )
        if request.category_id is not None:
            self.ledger.resolve_category(
                rule.user_id, request.category_id, TransactionKind.EXPENSE
            )

        rule.name = name
        for attr in ("category_id", "amount", "frequency", "interval",
                     "reminder_days_before", "is_active"):
            value = getattr(request, attr)
            if value is not None:
                setattr(rule, attr, value)
        if request.note is not None:
            rule.note = request.note.strip()
        if request.next_due_on is not None:
            rule.next_due_on = request.next_due_on
            rule.anchor_day = request.next_due_on.day

        self.db.flush()
        return rule

    def set_active(self, rule_id: int, active: bool) -> RecurringExpenseRule:
        """Toggle a rule. Inactive rules are skipped by check_due."""
        rule = self.get_rule(rule_id)
        rule.is_active = active
        self.db.flush()
        log.info(f"Recurring rule {rule.id} {'activated' if active else 'paused'}")
        return rule

    def delete_rule(self, rule_id: int) -> None:
        rule = self.get_rule(rule_id)
        self.db.delete(rule)
        self.db.flush()

    # --- Scheduling ---

    def _materialize(self, rule: RecurringExpenseRule, due: date) -> Transaction:
        txn = self.ledger.create_transaction(TransactionCreate(
            wallet_id=rule.wallet_id,
            category_id=rule.category_id,
            kind=TransactionKind.EXPENSE,
            magnitude=rule.amount,
            occurred_on=due,
            note=rule.note or rule.name,
        ))
        rule.last_materialized_on = due
        rule.next_due_on = next_occurrence(
            due, rule.frequency, rule.interval, rule.anchor_day
        )
        record_event(
            self.db, "recurring.materialized",
            rule_id=rule.id, wallet_id=rule.wallet_id, due_on=due,
            transaction_id=txn.id,
        )
        return txn

    def check_due(self, now: date) -> DueRunResult:
        """
        Materialize every active rule whose due date has come.

        A rule that missed several periods gets one transaction
        per missed due date. If the ledger rejects a rule's
        transaction, that rule keeps its due date and the error
        is reported in the result; the other rules still run.
        Calling this again with the same `now` is a no-op.
        """
        result = DueRunResult()
        rules = self.db.execute(
            select(RecurringExpenseRule)
            .where(
                RecurringExpenseRule.is_active.is_(True),
                RecurringExpenseRule.next_due_on <= now,
            )
            .order_by(RecurringExpenseRule.next_due_on, RecurringExpenseRule.id)
        ).scalars().all()

        for rule in rules:
            try:
                while rule.next_due_on <= now:
                    due = rule.next_due_on
                    if (rule.last_materialized_on is not None
                            and rule.last_materialized_on >= due):
                        # Already produced a transaction for this date
                        rule.next_due_on = next_occurrence(
                            due, rule.frequency, rule.interval, rule.anchor_day
                        )
                        continue
                    result.created.append(self._materialize(rule, due))
            except PocketLedgerError as e:
                result.failed[rule.id] = e.message
                log.warning(f"Recurring rule {rule.id} not materialized: {e}")

        self.db.flush()
        if result.created:
            log.info(
                f"Materialized {len(result.created)} recurring expenses "
                f"for {now}"
            )
        return result

    def list_upcoming_reminders(
        self,
        now: date,
        horizon_days: int | None = None,
        user_id: int | None = None,
    ) -> list[ReminderResponse]:
        """
        Active rules due on or before now + horizon_days,
        earliest first. Read-only.

        Each reminder is tagged OVERDUE when its due date has
        passed, DUE_SOON when it falls within the rule's
        reminder_days_before, or within the horizon when the rule
        sets none (today always counts), SCHEDULED otherwise.
        """
        if horizon_days is None:
            horizon_days = self.settings.REMINDER_HORIZON_DAYS
        if horizon_days < 0:
            raise ValidationError("Reminder horizon cannot be negative")

        query = select(RecurringExpenseRule).where(
            RecurringExpenseRule.is_active.is_(True),
            RecurringExpenseRule.next_due_on <= now + timedelta(days=horizon_days),
        )
        if user_id is not None:
            query = query.where(RecurringExpenseRule.user_id == user_id)
        rules = self.db.execute(
            query.order_by(
                RecurringExpenseRule.next_due_on, RecurringExpenseRule.id
            )
        ).scalars().all()

        reminders = []
        for rule in rules:
            days = (rule.next_due_on - now).days
            if days < 0:
                state = ReminderState.OVERDUE
            elif days <= (
                horizon_days if rule.reminder_days_before is None
                else rule.reminder_days_before
            ):
                state = ReminderState.DUE_SOON
            else:
                state = ReminderState.SCHEDULED
            reminders.append(ReminderResponse(
                rule_id=rule.id,
                name=rule.name,
                amount=rule.amount,
                wallet_id=rule.wallet_id,
                category_id=rule.category_id,
                due_on=rule.next_due_on,
                days_until_due=days,
                state=state,
            ))
        return reminders
