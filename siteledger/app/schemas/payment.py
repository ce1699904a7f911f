"""
Payment Pydantic schemas.
"""

from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field

from siteledger.app.domain.money import MAX_MAJOR
from siteledger.app.models.enums import AccountKind, PaymentKind, PaymentMode
from siteledger.app.schemas.ledger import LedgerEntryResponse
from siteledger.app.schemas.money import MoneyResponse


class PaymentCreate(BaseModel):
    """Schema for recording a wage, advance or deduction."""
    account_id: int
    kind: PaymentKind
    amount: Decimal = Field(..., gt=0, le=MAX_MAJOR, description="Amount in rupees")
    mode: PaymentMode = PaymentMode.CASH
    remarks: Optional[str] = Field(None, max_length=255)


class PaymentSummaryResponse(BaseModel):
    account_id: int
    kind: AccountKind
    earned: MoneyResponse
    total_paid: MoneyResponse
    total_advance: MoneyResponse
    total_deduction: MoneyResponse
    pending: MoneyResponse
    advance_outstanding: MoneyResponse
    net_payable: MoneyResponse
    history: List[LedgerEntryResponse]
