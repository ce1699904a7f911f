"""
Audit logging service for tracking money-moving and rental actions.

Audit rows are written inside the caller's unit of work so they commit or
roll back together with the ledger entries they describe.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from siteledger.app.models.audit_log import AuditLog


class AuditAction:
    """Standardized audit action constants."""
    ACCOUNT_OPENED = "ACCOUNT_OPENED"
    EQUIPMENT_REGISTERED = "EQUIPMENT_REGISTERED"

    # Rentals
    EQUIPMENT_ASSIGNED = "EQUIPMENT_ASSIGNED"
    RENT_PAUSED = "RENT_PAUSED"
    RENT_RESUMED = "RENT_RESUMED"
    EQUIPMENT_RETURNED = "EQUIPMENT_RETURNED"
    MAINTENANCE_STARTED = "MAINTENANCE_STARTED"
    MAINTENANCE_ENDED = "MAINTENANCE_ENDED"

    # Funds
    FUNDS_ALLOCATED = "FUNDS_ALLOCATED"
    FUNDS_TRANSFERRED = "FUNDS_TRANSFERRED"
    FUNDS_DEPOSITED = "FUNDS_DEPOSITED"
    FUNDS_BORROWED = "FUNDS_BORROWED"
    LOAN_REPAID = "LOAN_REPAID"

    # Payments & corrections
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    ENTRY_REVERSED = "ENTRY_REVERSED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    target_type: Optional[str] = None,
    target_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Add an audit row to the current unit of work.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of the user performing the action, as given by the caller
        target_type: Kind of object acted upon ("equipment", "account", ...)
        target_id: ID of the object acted upon
        metadata: Additional context as JSON

    Returns:
        Created AuditLog instance (flushed, not committed)
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        meta_data=metadata
    )

    db.add(audit_log)
    await db.flush()

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    target_type: Optional[str] = None,
    target_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, newest first.
    """
    query = select(AuditLog)

    if target_type:
        query = query.where(AuditLog.target_type == target_type)
    if target_id is not None:
        query = query.where(AuditLog.target_id == target_id)
    if action:
        query = query.where(AuditLog.action == action)

    query = query.order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())
