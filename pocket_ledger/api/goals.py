"""
Savings goal API endpoints.

Every response carries the goal state derived for today
(active, urgent, overdue, completed).
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from pocket_ledger.api.deps import get_clock, http_error
from pocket_ledger.clock import SystemClock
from pocket_ledger.exceptions import PocketLedgerError
from pocket_ledger.models.base import get_db
from pocket_ledger.services.savings_service import SavingsGoalEngine
from pocket_ledger.schemas.savings import (
    GoalCreate,
    GoalUpdate,
    GoalView,
    GoalDetail,
    ContributionCreate,
)

router = APIRouter(prefix="/goals", tags=["Savings goals"])


@router.post("", response_model=GoalView, status_code=201)
def create_goal(
    request: GoalCreate,
    db: Session = Depends(get_db),
    clock: SystemClock = Depends(get_clock),
):
    engine = SavingsGoalEngine(db)
    today = clock.today()
    try:
        goal = engine.create_goal(request, today)
        db.commit()
        return engine.view(goal, today)
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.get("", response_model=list[GoalView])
def list_goals(
    user_id: int,
    db: Session = Depends(get_db),
    clock: SystemClock = Depends(get_clock),
):
    engine = SavingsGoalEngine(db)
    today = clock.today()
    return [engine.view(goal, today) for goal in engine.list_goals(user_id)]


@router.get("/{goal_id}", response_model=GoalDetail)
def get_goal(
    goal_id: int,
    db: Session = Depends(get_db),
    clock: SystemClock = Depends(get_clock),
):
    engine = SavingsGoalEngine(db)
    try:
        return engine.detail(engine.get_goal(goal_id), clock.today())
    except PocketLedgerError as e:
        raise http_error(e)


@router.patch("/{goal_id}", response_model=GoalView)
def update_goal(
    goal_id: int,
    request: GoalUpdate,
    db: Session = Depends(get_db),
    clock: SystemClock = Depends(get_clock),
):
    engine = SavingsGoalEngine(db)
    today = clock.today()
    try:
        goal = engine.update_goal(goal_id, request, today)
        db.commit()
        return engine.view(goal, today)
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.delete("/{goal_id}", status_code=204)
def delete_goal(goal_id: int, db: Session = Depends(get_db)):
    engine = SavingsGoalEngine(db)
    try:
        engine.delete_goal(goal_id)
        db.commit()
        return Response(status_code=204)
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.post(
    "/{goal_id}/contributions",
    response_model=GoalDetail,
    status_code=201,
)
def contribute(
    goal_id: int,
    request: ContributionCreate,
    db: Session = Depends(get_db),
    clock: SystemClock = Depends(get_clock),
):
    """
    Add money to a goal, optionally debiting a wallet.

    If the wallet debit is rejected, nothing is recorded.
    """
    engine = SavingsGoalEngine(db)
    today = clock.today()
    try:
        engine.contribute(goal_id, request, today)
        db.commit()
        return engine.detail(engine.get_goal(goal_id), today)
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)
