"""
Rental Assignment and Pause Interval database models.

Ensures at most one open assignment per equipment unit, and at most one open
pause per assignment, through partial unique indexes.
"""

from sqlalchemy import (
    Column, Integer, BigInteger, ForeignKey, DateTime, Enum, Index, UniqueConstraint, text
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from siteledger.app.db.session import Base
from siteledger.app.db.types import UTCDateTime
from siteledger.app.models.enums import AssigneeType, RateUnit


class RentalAssignment(Base):
    """
    Rental Assignment model.

    Opened when equipment is assigned, closed (ended_at set) on return.
    Billing fields are filled exactly once, when the assignment closes.
    """
    __tablename__ = "rental_assignments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    equipment_id = Column(Integer, ForeignKey('equipment.id'), nullable=False, index=True)

    # Assignee (tagged: project expense account or contractor account)
    assignee_type = Column(Enum(AssigneeType), nullable=False)
    assignee_account_id = Column(Integer, ForeignKey('accounts.id'), nullable=False, index=True)

    # Pricing
    rate_minor = Column(BigInteger, nullable=False)
    rate_unit = Column(Enum(RateUnit), nullable=False)

    # Lifecycle
    started_at = Column(UTCDateTime, nullable=False)
    ended_at = Column(UTCDateTime, nullable=True)

    # Billing outcome (set on return)
    billable_seconds = Column(BigInteger, nullable=True)
    billed_units = Column(Integer, nullable=True)
    total_charge_minor = Column(BigInteger, nullable=True)
    ledger_entry_id = Column(Integer, ForeignKey('ledger_entries.id'), nullable=True)

    # Audit
    assigned_by = Column(Integer, nullable=True)
    returned_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    pauses = relationship(
        "PauseInterval",
        order_by="PauseInterval.sequence",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index(
            'ix_rental_assignments_open', 'equipment_id', unique=True,
            postgresql_where=text('ended_at IS NULL'),
            sqlite_where=text('ended_at IS NULL'),
        ),
    )

    @property
    def open_pause(self):
        if self.pauses and self.pauses[-1].resumed_at is None:
            return self.pauses[-1]
        return None

    def __repr__(self):
        return f"<RentalAssignment(id={self.id}, equipment_id={self.equipment_id}, open={self.ended_at is None})>"


class PauseInterval(Base):
    """
    A stretch of time during which an assignment is not billable.

    Intervals of one assignment are numbered by ``sequence`` and never overlap.
    """
    __tablename__ = "pause_intervals"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    assignment_id = Column(Integer, ForeignKey('rental_assignments.id'), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)

    paused_at = Column(UTCDateTime, nullable=False)
    resumed_at = Column(UTCDateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint('assignment_id', 'sequence', name='uq_pause_intervals_sequence'),
        Index(
            'ix_pause_intervals_open', 'assignment_id', unique=True,
            postgresql_where=text('resumed_at IS NULL'),
            sqlite_where=text('resumed_at IS NULL'),
        ),
    )

    def __repr__(self):
        return f"<PauseInterval(assignment_id={self.assignment_id}, seq={self.sequence}, open={self.resumed_at is None})>"
