"""
Audit Log Database Model.

Records who performed each money-moving or rental action.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from siteledger.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - ACCOUNT_OPENED / EQUIPMENT_REGISTERED
    - EQUIPMENT_ASSIGNED / RENT_PAUSED / RENT_RESUMED / EQUIPMENT_RETURNED
    - FUNDS_ALLOCATED / FUNDS_TRANSFERRED / FUNDS_DEPOSITED / FUNDS_BORROWED / LOAN_REPAID
    - PAYMENT_RECORDED / ENTRY_REVERSED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # What it was performed on
    target_type = Column(String(50), nullable=True)
    target_id = Column(Integer, index=True, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_id}, target={self.target_type}:{self.target_id})>"
