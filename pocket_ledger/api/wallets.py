"""
Wallet API endpoints.

The API layer is thin: it handles HTTP concerns (status
codes, response formatting, commit/rollback) and delegates
all business logic to the LedgerService.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from pocket_ledger.api.deps import get_clock, http_error
from pocket_ledger.clock import SystemClock
from pocket_ledger.exceptions import PocketLedgerError
from pocket_ledger.models.base import get_db
from pocket_ledger.services.audit import wallet_history
from pocket_ledger.services.ledger_service import LedgerService
from pocket_ledger.schemas.ledger import (
    WalletCreate,
    WalletUpdate,
    WalletResponse,
    TransferRequest,
    TransferResponse,
    TransactionResponse,
    AuditEntryResponse,
)

router = APIRouter(prefix="/wallets", tags=["Wallets"])


@router.post("", response_model=WalletResponse, status_code=201)
def create_wallet(
    request: WalletCreate,
    db: Session = Depends(get_db),
    clock: SystemClock = Depends(get_clock),
):
    """Create a wallet. The user's first wallet becomes the default."""
    service = LedgerService(db)
    try:
        wallet = service.create_wallet(request, opened_on=clock.today())
        db.commit()
        return wallet
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.get("", response_model=list[WalletResponse])
def list_wallets(user_id: int, db: Session = Depends(get_db)):
    return LedgerService(db).list_wallets(user_id)


@router.post("/transfer", response_model=TransferResponse, status_code=201)
def transfer(request: TransferRequest, db: Session = Depends(get_db)):
    """Move money between two wallets of the same user and currency."""
    service = LedgerService(db)
    try:
        outgoing, incoming = service.transfer(request)
        db.commit()
        return TransferResponse(
            source=TransactionResponse.model_validate(outgoing),
            destination=TransactionResponse.model_validate(incoming),
        )
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.get("/{wallet_id}", response_model=WalletResponse)
def get_wallet(wallet_id: int, db: Session = Depends(get_db)):
    try:
        return LedgerService(db).get_wallet(wallet_id)
    except PocketLedgerError as e:
        raise http_error(e)


@router.patch("/{wallet_id}", response_model=WalletResponse)
def update_wallet(
    wallet_id: int,
    request: WalletUpdate,
    db: Session = Depends(get_db),
):
    service = LedgerService(db)
    try:
        wallet = service.update_wallet(wallet_id, request)
        db.commit()
        return wallet
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.delete("/{wallet_id}", status_code=204)
def delete_wallet(
    wallet_id: int,
    cascade: bool = False,
    db: Session = Depends(get_db),
):
    """
    Delete a wallet.

    Without cascade=true a wallet that still has transactions
    or recurring rules is refused with 409.
    """
    service = LedgerService(db)
    try:
        service.delete_wallet(wallet_id, cascade=cascade)
        db.commit()
        return Response(status_code=204)
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.post("/{wallet_id}/default", response_model=WalletResponse)
def set_default_wallet(wallet_id: int, db: Session = Depends(get_db)):
    service = LedgerService(db)
    try:
        wallet = service.set_default_wallet(wallet_id)
        db.commit()
        return wallet
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.get(
    "/{wallet_id}/transactions",
    response_model=list[TransactionResponse],
)
def list_wallet_transactions(wallet_id: int, db: Session = Depends(get_db)):
    """All transactions of a wallet, newest first."""
    try:
        return LedgerService(db).list_transactions(wallet_id)
    except PocketLedgerError as e:
        raise http_error(e)


@router.get("/{wallet_id}/balance-check")
def check_wallet_balance(wallet_id: int, db: Session = Depends(get_db)):
    """
    Compare the cached balance with the sum of the wallet's
    transactions. They must always be equal.
    """
    service = LedgerService(db)
    try:
        wallet = service.get_wallet(wallet_id)
        computed = service.recompute_balance(wallet_id)
    except PocketLedgerError as e:
        raise http_error(e)

    return {
        "wallet_id": wallet.id,
        "balance": wallet.balance,
        "computed_balance": computed,
        "consistent": wallet.balance == computed,
    }


@router.get("/{wallet_id}/history", response_model=list[AuditEntryResponse])
def get_wallet_history(wallet_id: int, db: Session = Depends(get_db)):
    """Audit events of a wallet, oldest first. Kept after the wallet is deleted."""
    return wallet_history(db, wallet_id)
