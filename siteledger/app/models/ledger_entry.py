"""
Ledger Entry database model.

Immutable accounting records for every money movement.
"""

from sqlalchemy import (
    Column, Integer, BigInteger, ForeignKey, DateTime, Enum, String, Index, CheckConstraint
)
from sqlalchemy.sql import func
from siteledger.app.db.session import Base
from siteledger.app.db.types import UTCDateTime
from siteledger.app.models.enums import EntryDirection, EntryCategory, PaymentMode


class LedgerEntry(Base):
    """
    Ledger Entry model.

    Immutable record of a financial movement against one account.
    Paired operations (allocations, transfers, borrowings) share a transfer_group.
    NO updates or deletions allowed; corrections are new entries with
    reverses_entry_id pointing at the original.
    """
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Account
    account_id = Column(Integer, ForeignKey('accounts.id'), nullable=False, index=True)

    # Entry details
    direction = Column(Enum(EntryDirection), nullable=False)
    category = Column(Enum(EntryCategory), nullable=False, index=True)
    amount_minor = Column(BigInteger, nullable=False)
    description = Column(String(255), nullable=True)
    payment_mode = Column(Enum(PaymentMode), nullable=True)

    # When the movement happened (business time, from the injected clock)
    occurred_at = Column(UTCDateTime, nullable=False)

    # Linkage
    counterpart_account_id = Column(Integer, ForeignKey('accounts.id'), nullable=True)
    transfer_group = Column(String(36), nullable=True, index=True)
    source_type = Column(String(50), nullable=True)
    source_id = Column(Integer, nullable=True)
    reverses_entry_id = Column(Integer, ForeignKey('ledger_entries.id'), nullable=True, unique=True)

    # Audit
    recorded_by = Column(Integer, nullable=True)

    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint('amount_minor > 0', name='ck_ledger_entries_amount_positive'),
        Index('ix_ledger_entries_account_occurred', 'account_id', 'occurred_at', 'id'),
    )

    def __repr__(self):
        return (
            f"<LedgerEntry(id={self.id}, account={self.account_id}, "
            f"{self.direction.value} {self.category.value} {self.amount_minor})>"
        )
