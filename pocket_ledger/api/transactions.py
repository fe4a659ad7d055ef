"""
Transaction API endpoints, including quick input.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from pocket_ledger.api.deps import http_error
from pocket_ledger.exceptions import PocketLedgerError
from pocket_ledger.models.base import get_db
from pocket_ledger.services.ledger_service import LedgerService
from pocket_ledger.services.parser_service import ParserService
from pocket_ledger.schemas.ledger import (
    TransactionCreate,
    TransactionUpdate,
    TransactionResponse,
    TransactionDraft,
    BulkDeleteRequest,
    QuickParseRequest,
    QuickCommitRequest,
)

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.post("", response_model=TransactionResponse, status_code=201)
def create_transaction(
    request: TransactionCreate,
    db: Session = Depends(get_db),
):
    """Record an income or expense; the wallet balance follows."""
    service = LedgerService(db)
    try:
        txn = service.create_transaction(request)
        db.commit()
        return txn
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.post("/quick-parse", response_model=list[TransactionDraft])
def parse_quick_input(
    request: QuickParseRequest,
    db: Session = Depends(get_db),
):
    """
    Turn "coffee 15k, lunch 50k" into drafts with suggested
    categories. Nothing is written.
    """
    categories = LedgerService(db).list_categories(request.user_id)
    try:
        return ParserService().parse_with_categories(request.text, categories)
    except PocketLedgerError as e:
        raise http_error(e)


@router.post(
    "/quick",
    response_model=list[TransactionResponse],
    status_code=201,
)
def commit_quick_input(
    request: QuickCommitRequest,
    db: Session = Depends(get_db),
):
    """Write reviewed drafts to a wallet, in order, all or nothing."""
    service = LedgerService(db)
    try:
        txns = service.create_quick_transactions(request)
        db.commit()
        return txns
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.post("/bulk-delete")
def bulk_delete_transactions(
    request: BulkDeleteRequest,
    db: Session = Depends(get_db),
):
    service = LedgerService(db)
    try:
        deleted = service.delete_transactions(request.transaction_ids)
        db.commit()
        return {"deleted": deleted}
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(transaction_id: int, db: Session = Depends(get_db)):
    try:
        return LedgerService(db).get_transaction(transaction_id)
    except PocketLedgerError as e:
        raise http_error(e)


@router.patch("/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: int,
    request: TransactionUpdate,
    db: Session = Depends(get_db),
):
    service = LedgerService(db)
    try:
        txn = service.update_transaction(transaction_id, request)
        db.commit()
        return txn
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.delete("/{transaction_id}", status_code=204)
def delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    service = LedgerService(db)
    try:
        service.delete_transaction(transaction_id)
        db.commit()
        return Response(status_code=204)
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)
