"""
Category API endpoints.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from pocket_ledger.api.deps import http_error
from pocket_ledger.exceptions import PocketLedgerError
from pocket_ledger.models.base import get_db
from pocket_ledger.models.enums import CategoryScope
from pocket_ledger.services.ledger_service import LedgerService
from pocket_ledger.schemas.ledger import (
    CategoryCreate,
    CategoryUpdate,
    CategoryResponse,
)

router = APIRouter(prefix="/categories", tags=["Categories"])


@router.post("", response_model=CategoryResponse, status_code=201)
def create_category(request: CategoryCreate, db: Session = Depends(get_db)):
    service = LedgerService(db)
    try:
        category = service.create_category(request)
        db.commit()
        return category
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.get("", response_model=list[CategoryResponse])
def list_categories(
    user_id: int,
    scope: CategoryScope = CategoryScope.ALL,
    db: Session = Depends(get_db),
):
    """System categories, the user's own, or both."""
    return LedgerService(db).list_categories(user_id, scope)


@router.patch("/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: int,
    request: CategoryUpdate,
    db: Session = Depends(get_db),
):
    service = LedgerService(db)
    try:
        category = service.rename_category(category_id, request)
        db.commit()
        return category
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.delete("/{category_id}", status_code=204)
def delete_category(category_id: int, db: Session = Depends(get_db)):
    """Refused with 409 while transactions or rules still use it."""
    service = LedgerService(db)
    try:
        service.delete_category(category_id)
        db.commit()
        return Response(status_code=204)
    except PocketLedgerError as e:
        db.rollback()
        raise http_error(e)
