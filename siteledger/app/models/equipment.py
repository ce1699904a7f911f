"""
Equipment database model.

Machines, lab equipment and tools move through the rental state machine;
consumables are tracked by quantity only.
"""

from sqlalchemy import Column, Integer, BigInteger, String, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from siteledger.app.db.session import Base
from siteledger.app.models.enums import (
    EquipmentCategory, OwnershipType, EquipmentStatus, RateUnit
)


class Equipment(Base):
    """
    Equipment model.

    ``status`` is ASSIGNED exactly while an open RentalAssignment exists.
    """
    __tablename__ = "equipment"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Identification
    name = Column(String(255), nullable=False)
    model = Column(String(100), nullable=True)
    plate_number = Column(String(50), nullable=True)
    category = Column(Enum(EquipmentCategory), nullable=False, index=True)

    # Ownership
    ownership = Column(Enum(OwnershipType), default=OwnershipType.OWNED, nullable=False)
    vendor_account_id = Column(Integer, ForeignKey('accounts.id'), nullable=True)

    # Default pricing (used when an assignment does not specify its own rate)
    default_rate_minor = Column(BigInteger, nullable=True)
    default_rate_unit = Column(Enum(RateUnit), nullable=True)

    # Consumables only
    quantity = Column(Integer, default=1, nullable=False)

    status = Column(Enum(EquipmentStatus), default=EquipmentStatus.AVAILABLE, nullable=False, index=True)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Equipment(id={self.id}, name='{self.name}', status='{self.status.value}')>"
