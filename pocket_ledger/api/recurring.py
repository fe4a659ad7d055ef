"""
Recurring expense API endpoints.

Due rules are materialized by the background scheduler, not
through this API; clients only manage rules and read
reminders.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from pocket_ledger.api.deps import get_clock, http_error
from pocket_ledger.clock import SystemClock
from pocket_ledger.exceptions import PocketLedgerError
from pocket_ledger.models.base import get_db
from pocket_ledger.services.recurring_service import RecurringExpenseEngine
from pocket_ledger.schemas.recurring import (
    RecurringRuleCreate,
    RecurringRuleUpdate,
    RecurringRuleResponse,
    ReminderResponse,
)

router = APIRouter(prefix="/recurring", tags=["Recurring expenses"])


@router.post("", response_model=RecurringRuleResponse, status_code=201)
def create_rule(request: RecurringRuleCreate, db: Session = Depends(get_db)):
    engine = RecurringExpenseEngine(db)
    try:
        rule = engine.create_rule(request)
        db.commit()
        return rule
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.get("", response_model=list[RecurringRuleResponse])
def list_rules(
    user_id: int,
    active: bool | None = None,
    db: Session = Depends(get_db),
):
    return RecurringExpenseEngine(db).list_rules(user_id, active)


@router.get("/reminders", response_model=list[ReminderResponse])
def list_reminders(
    user_id: int | None = None,
    horizon_days: int | None = None,
    db: Session = Depends(get_db),
    clock: SystemClock = Depends(get_clock),
):
    """Upcoming and overdue recurring expenses, earliest first."""
    engine = RecurringExpenseEngine(db)
    try:
        return engine.list_upcoming_reminders(
            clock.today(), horizon_days, user_id=user_id
        )
    except PocketLedgerError as e:
        raise http_error(e)


@router.patch("/{rule_id}", response_model=RecurringRuleResponse)
def update_rule(
    rule_id: int,
    request: RecurringRuleUpdate,
    db: Session = Depends(get_db),
):
    engine = RecurringExpenseEngine(db)
    try:
        rule = engine.update_rule(rule_id, request)
        db.commit()
        return rule
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.delete("/{rule_id}", status_code=204)
def delete_rule(rule_id: int, db: Session = Depends(get_db)):
    engine = RecurringExpenseEngine(db)
    try:
        engine.delete_rule(rule_id)
        db.commit()
        return Response(status_code=204)
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)
