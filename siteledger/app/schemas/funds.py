"""
Fund movement Pydantic schemas.
"""

from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field

from siteledger.app.domain.money import MAX_MAJOR
from siteledger.app.models.enums import PaymentMode
from siteledger.app.schemas.ledger import LedgerEntryResponse
from siteledger.app.schemas.money import MoneyResponse


class AllocateRequest(BaseModel):
    from_bank_id: int
    to_wallet_id: int
    amount: Decimal = Field(..., gt=0, le=MAX_MAJOR, description="Amount in rupees")
    description: Optional[str] = Field(None, max_length=255)


class TransferRequest(BaseModel):
    from_bank_id: int
    to_bank_id: int
    amount: Decimal = Field(..., gt=0, le=MAX_MAJOR)
    description: Optional[str] = Field(None, max_length=255)


class DepositRequest(BaseModel):
    bank_id: int
    amount: Decimal = Field(..., gt=0, le=MAX_MAJOR)
    source_mode: PaymentMode = PaymentMode.CASH
    description: Optional[str] = Field(None, max_length=255)


class BorrowRequest(BaseModel):
    creditor_id: int
    into_bank_id: int
    amount: Decimal = Field(..., gt=0, le=MAX_MAJOR)
    description: Optional[str] = Field(None, max_length=255)


class RepayRequest(BaseModel):
    creditor_id: int
    from_bank_id: int
    amount: Decimal = Field(..., gt=0, le=MAX_MAJOR)
    description: Optional[str] = Field(None, max_length=255)


class FundMovementResponse(BaseModel):
    transfer_group: str
    amount: MoneyResponse
    entries: List[LedgerEntryResponse]
