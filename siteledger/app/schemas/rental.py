"""
Equipment and rental Pydantic schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field

from siteledger.app.domain.money import MAX_MAJOR
from siteledger.app.models.enums import (
    AssigneeType, EquipmentCategory, EquipmentStatus, OwnershipType, RateUnit
)
from siteledger.app.schemas.money import MoneyResponse


class EquipmentCreate(BaseModel):
    """Schema for registering equipment."""
    name: str = Field(..., min_length=1, max_length=255)
    category: EquipmentCategory
    ownership: OwnershipType = OwnershipType.OWNED
    vendor_account_id: Optional[int] = Field(None, description="Required when rented")
    default_rate: Optional[Decimal] = Field(None, ge=0, le=MAX_MAJOR, description="Rate in rupees per unit")
    default_rate_unit: Optional[RateUnit] = None
    quantity: int = Field(1, ge=0, description="Consumables only")
    model: Optional[str] = Field(None, max_length=100)
    plate_number: Optional[str] = Field(None, max_length=50)


class EquipmentResponse(BaseModel):
    id: int
    name: str
    model: Optional[str]
    plate_number: Optional[str]
    category: EquipmentCategory
    ownership: OwnershipType
    vendor_account_id: Optional[int]
    default_rate_minor: Optional[int]
    default_rate_unit: Optional[RateUnit]
    quantity: int
    status: EquipmentStatus

    class Config:
        from_attributes = True


class EquipmentListResponse(BaseModel):
    equipment: List[EquipmentResponse]
    total: int


class AssignRequest(BaseModel):
    """Rate and unit default to the equipment's when omitted."""
    assignee_type: AssigneeType
    assignee_account_id: int
    rate: Optional[Decimal] = Field(None, le=MAX_MAJOR, description="Rate in rupees per unit")
    rate_unit: Optional[RateUnit] = None


class PauseResponse(BaseModel):
    sequence: int
    paused_at: datetime
    resumed_at: Optional[datetime]

    class Config:
        from_attributes = True


class AssignmentResponse(BaseModel):
    id: int
    equipment_id: int
    assignee_type: AssigneeType
    assignee_account_id: int
    rate_minor: int
    rate_unit: RateUnit
    started_at: datetime
    ended_at: Optional[datetime]
    billable_seconds: Optional[int]
    billed_units: Optional[int]
    total_charge_minor: Optional[int]
    ledger_entry_id: Optional[int]
    assigned_by: Optional[int]
    returned_by: Optional[int]
    pauses: List[PauseResponse] = []

    class Config:
        from_attributes = True


class ChargeResponse(BaseModel):
    total_charge: MoneyResponse
    billable_seconds: int
    units: int
    rate: MoneyResponse
    rate_unit: RateUnit
    warning: Optional[str]


class ReturnResponse(BaseModel):
    assignment_id: int
    equipment_id: int
    assignee_account_id: int
    started_at: datetime
    ended_at: datetime
    charge: ChargeResponse
    ledger_entry_id: Optional[int]


class WorkingPeriodResponse(BaseModel):
    start: datetime = Field(..., alias="from")
    end: datetime = Field(..., alias="to")
    seconds: int
    state: str

    class Config:
        populate_by_name = True


class RentalStatusResponse(BaseModel):
    assignment_id: int
    equipment_id: int
    assignee_type: AssigneeType
    assignee_account_id: int
    started_at: datetime
    as_of: datetime
    paused: bool
    elapsed_seconds: int
    paused_seconds: int
    billable_seconds: int
    accrued: ChargeResponse
    periods: List[WorkingPeriodResponse]
