"""
Savings goal engine.

Tracks progress towards savings goals. A goal's display state
(active, urgent, overdue, completed) is a pure function of its
amounts, its deadline and the day it is looked at, and is
recomputed on every read. The one stored piece of state is the
COMPLETED status, which is set the first time the current
amount reaches the target and is never cleared.
"""

import logging
import math
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from pocket_ledger.clock import utcnow
from pocket_ledger.config import Settings, get_settings
from pocket_ledger.exceptions import (
    ValidationError,
    NotFoundError,
    ConflictError,
)
from pocket_ledger.models.enums import GoalState, GoalStatus, TransactionKind
from pocket_ledger.models.savings_goal import SavingsGoal, GoalContribution
from pocket_ledger.schemas.ledger import TransactionCreate
from pocket_ledger.schemas.savings import (
    GoalCreate,
    GoalUpdate,
    ContributionCreate,
    ContributionResponse,
    GoalView,
    GoalDetail,
)
from pocket_ledger.services.audit import record_event
from pocket_ledger.services.ledger_service import (
    LedgerService,
    MIN_NAME_LENGTH,
    SAVINGS_CATEGORY,
)

log = logging.getLogger(__name__)

INITIAL_CONTRIBUTION_NOTE = "Initial amount"


def days_remaining(deadline: date, now: date) -> int:
    """ceil((deadline - now) / 1 day); negative once the deadline passed."""
    return math.ceil((deadline - now).total_seconds() / 86400)


def derive_state(
    target_amount: int,
    current_amount: int,
    deadline: date,
    now: date,
    completed: bool = False,
    urgent_days: int = 7,
) -> GoalState:
    """
    Display state of a goal on day `now`.

    completed: the target has been reached (or was reached once)
    overdue:   not completed and the deadline has passed
    urgent:    not completed, deadline within `urgent_days`
    active:    anything else
    """
    if completed or current_amount >= target_amount:
        return GoalState.COMPLETED
    if deadline < now:
        return GoalState.OVERDUE
    if days_remaining(deadline, now) <= urgent_days:
        return GoalState.URGENT
    return GoalState.ACTIVE


def monthly_needed(remaining: int, deadline: date, now: date) -> int:
    """
    Amount to save per calendar month to finish by the deadline.
    With less than a month left, the whole remainder is due.
    """
    if remaining <= 0:
        return 0
    months = (deadline.year - now.year) * 12 + (deadline.month - now.month)
    if months <= 0:
        return remaining
    return -(-remaining // months)


class SavingsGoalEngine:

    def __init__(
        self,
        db: Session,
        ledger: LedgerService | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.ledger = ledger or LedgerService(db, self.settings)

    # --- Helpers ---

    def _validate_name(self, name: str) -> str:
        cleaned = (name or "").strip()
        if len(cleaned) < MIN_NAME_LENGTH:
            raise ValidationError(
                f"Goal name must be at least {MIN_NAME_LENGTH} characters"
            )
        return cleaned

    def _validate_deadline(self, deadline: date, now: date) -> None:
        if deadline <= now:
            raise ValidationError(
                f"Deadline {deadline} must be after {now}"
            )

    def _complete_if_reached(self, goal: SavingsGoal) -> None:
        if (goal.status != GoalStatus.COMPLETED
                and goal.current_amount >= goal.target_amount):
            goal.status = GoalStatus.COMPLETED
            goal.completed_at = utcnow()
            record_event(self.db, "goal.completed", goal_id=goal.id)
            log.info(f"Savings goal {goal.id} completed")

    def _add(
        self,
        goal: SavingsGoal,
        amount: int,
        note: str,
        now: date,
        wallet_id: int | None = None,
        transaction_id: int | None = None,
    ) -> GoalContribution:
        contribution = GoalContribution(
            amount=amount,
            note=note,
            wallet_id=wallet_id,
            transaction_id=transaction_id,
            contributed_on=now,
        )
        goal.contributions.append(contribution)
        goal.current_amount += amount
        self._complete_if_reached(goal)
        return contribution

    # --- Reads ---

    def view(self, goal: SavingsGoal, now: date) -> GoalView:
        """Derive the display state of a goal for day `now`."""
        remaining = max(goal.target_amount - goal.current_amount, 0)
        progress = goal.current_amount / goal.target_amount * 100
        return GoalView(
            id=goal.id,
            user_id=goal.user_id,
            name=goal.name,
            target_amount=goal.target_amount,
            current_amount=goal.current_amount,
            deadline=goal.deadline,
            currency=goal.currency,
            icon=goal.icon,
            color=goal.color,
            status=goal.status,
            state=derive_state(
                goal.target_amount,
                goal.current_amount,
                goal.deadline,
                now,
                completed=goal.status == GoalStatus.COMPLETED,
                urgent_days=self.settings.GOAL_URGENT_DAYS,
            ),
            days_remaining=days_remaining(goal.deadline, now),
            progress_percent=round(min(progress, 100.0), 2),
            remaining_amount=remaining,
            monthly_needed=monthly_needed(remaining, goal.deadline, now),
            completed_at=goal.completed_at,
        )

    def detail(self, goal: SavingsGoal, now: date) -> GoalDetail:
        return GoalDetail(
            **self.view(goal, now).model_dump(),
            contributions=[
                ContributionResponse.model_validate(c)
                for c in goal.contributions
            ],
        )

    def get_goal(self, goal_id: int) -> SavingsGoal:
        goal = self.db.get(SavingsGoal, goal_id)
        if not goal:
            raise NotFoundError(f"Savings goal {goal_id} not found")
        return goal

    def list_goals(self, user_id: int) -> list[SavingsGoal]:
        goals = self.db.execute(
            select(SavingsGoal)
            .where(SavingsGoal.user_id == user_id)
            .order_by(SavingsGoal.deadline, SavingsGoal.id)
        ).scalars().all()
        return list(goals)

    # --- Writes ---

    def create_goal(self, request: GoalCreate, now: date) -> SavingsGoal:
        """
        Create an active goal.

        A non-zero initial amount is recorded as a contribution
        no wallet pays for, and may not exceed the target.
        """
        name = self._validate_name(request.name)
        if request.target_amount <= 0:
            raise ValidationError("Target amount must be positive")
        if request.initial_amount < 0:
            raise ValidationError("Initial amount cannot be negative")
        if request.initial_amount > request.target_amount:
            raise ValidationError("Initial amount cannot exceed the target")
        self._validate_deadline(request.deadline, now)

        goal = SavingsGoal(
            user_id=request.user_id,
            name=name,
            target_amount=request.target_amount,
            current_amount=0,
            deadline=request.deadline,
            status=GoalStatus.ACTIVE,
            currency=request.currency.upper(),
            icon=request.icon,
            color=request.color,
        )
        self.db.add(goal)
        self.db.flush()

        if request.initial_amount > 0:
            self._add(goal, request.initial_amount, INITIAL_CONTRIBUTION_NOTE, now)

        self.db.flush()
        return goal

    def update_goal(
        self, goal_id: int, request: GoalUpdate, now: date
    ) -> SavingsGoal:
        """Edit an active goal. Completed goals are read-only."""
        goal = self.get_goal(goal_id)
        if goal.status == GoalStatus.COMPLETED:
            raise ConflictError(f"Savings goal {goal_id} is already completed")

        name = self._validate_name(request.name) if request.name is not None else None
        if request.target_amount is not None and request.target_amount <= 0:
            raise ValidationError("Target amount must be positive")
        if request.deadline is not None:
            self._validate_deadline(request.deadline, now)

        if name is not None:
            goal.name = name
        if request.target_amount is not None:
            goal.target_amount = request.target_amount
        if request.deadline is not None:
            goal.deadline = request.deadline
        if request.icon is not None:
            goal.icon = request.icon
        if request.color is not None:
            goal.color = request.color

        # Lowering the target can complete the goal
        self._complete_if_reached(goal)
        self.db.flush()
        return goal

    def delete_goal(self, goal_id: int) -> None:
        """
        Delete a goal and its contribution history. Money already
        debited from wallets stays recorded in the ledger.
        """
        goal = self.get_goal(goal_id)
        self.db.delete(goal)
        self.db.flush()

    def contribute(
        self, goal_id: int, request: ContributionCreate, now: date
    ) -> GoalContribution:
        """
        Add money to a goal.

        With a wallet_id, the amount is first posted as an
        expense in the "Savings" category of that wallet. If
        the ledger rejects it, the goal is left untouched.
        Without a wallet the contribution is bookkeeping only.
        """
        if request.amount <= 0:
            raise ValidationError(
                f"Contribution must be positive, got {request.amount}"
            )
        goal = self.get_goal(goal_id)
        if goal.status == GoalStatus.COMPLETED:
            raise ConflictError(f"Savings goal {goal_id} is already completed")

        note = request.note.strip()
        transaction_id = None
        if request.wallet_id is not None:
            wallet = self.ledger.get_wallet(request.wallet_id)
            if wallet.user_id != goal.user_id:
                raise ValidationError(
                    f"Wallet {wallet.id} does not belong to the goal's owner"
                )
            savings = self.ledger.system_category(SAVINGS_CATEGORY)
            txn = self.ledger.create_transaction(TransactionCreate(
                wallet_id=request.wallet_id,
                category_id=savings.id,
                kind=TransactionKind.EXPENSE,
                magnitude=request.amount,
                occurred_on=now,
                note=note or f"Savings: {goal.name}",
            ))
            transaction_id = txn.id

        contribution = self._add(
            goal, request.amount, note, now,
            wallet_id=request.wallet_id,
            transaction_id=transaction_id,
        )
        self.db.flush()
        record_event(
            self.db, "goal.contribution",
            goal_id=goal.id, amount=request.amount,
            wallet_id=request.wallet_id, transaction_id=transaction_id,
        )
        self.db.flush()
        return contribution
