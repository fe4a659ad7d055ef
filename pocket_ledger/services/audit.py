"""Append-only audit trail helper."""

import json

from sqlalchemy import select
from sqlalchemy.orm import Session

from pocket_ledger.models.audit_log import AuditLog


def record_event(db: Session, event_type: str, **details) -> AuditLog:
    """
    Add an audit record to the current unit of work.

    The record is committed or rolled back together with the
    change it describes.
    """
    entry = AuditLog(
        event_type=event_type,
        wallet_id=details.get("wallet_id"),
        details=json.dumps(details, default=str, sort_keys=True),
    )
    db.add(entry)
    return entry


def wallet_history(db: Session, wallet_id: int) -> list[AuditLog]:
    """Events recorded for one wallet, oldest first."""
    entries = db.execute(
        select(AuditLog)
        .where(AuditLog.wallet_id == wallet_id)
        .order_by(AuditLog.id)
    ).scalars().all()
    return list(entries)
