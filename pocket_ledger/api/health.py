"""
Health check endpoint.

Reports database connectivity so a process supervisor can
tell a live instance from a stuck one.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pocket_ledger.models.base import get_db

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Return application health status including database connectivity.

    A failed "SELECT 1" marks the instance as degraded instead
    of raising, so the endpoint itself always answers.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError:
        db_status = "unhealthy"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "service": "pocket-ledger",
        "database": db_status,
    }
