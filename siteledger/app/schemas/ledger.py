"""
Ledger Pydantic schemas.
"""

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, Field

from siteledger.app.models.enums import EntryDirection, EntryCategory, PaymentMode


class LedgerEntryResponse(BaseModel):
    """Schema for displaying a ledger entry."""
    id: int
    account_id: int
    direction: EntryDirection
    category: EntryCategory
    amount_minor: int
    description: Optional[str]
    payment_mode: Optional[PaymentMode]
    occurred_at: datetime
    counterpart_account_id: Optional[int]
    transfer_group: Optional[str]
    source_type: Optional[str]
    source_id: Optional[int]
    reverses_entry_id: Optional[int]
    recorded_by: Optional[int]

    class Config:
        from_attributes = True


class LedgerEntryListResponse(BaseModel):
    account_id: int
    entries: List[LedgerEntryResponse]


class ReversalRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=200)


class ReversalResponse(BaseModel):
    reversed_entry_id: int
    reversals: List[LedgerEntryResponse]
