"""
Account Pydantic schemas.
"""

from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field

from siteledger.app.domain.money import MAX_MAJOR
from siteledger.app.models.enums import AccountKind
from siteledger.app.schemas.money import MoneyResponse


class AccountCreate(BaseModel):
    """Schema for opening an account. Only the fields of the chosen kind may be set."""
    kind: AccountKind
    name: str = Field(..., min_length=1, max_length=255)

    # Labourer, contractor, vendor, creditor
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)

    # Labourer
    daily_wage: Optional[Decimal] = Field(None, ge=0, le=MAX_MAJOR, description="Daily wage in rupees")
    designation: Optional[str] = Field(None, max_length=100)

    # Bank account
    bank_name: Optional[str] = Field(None, max_length=100)
    holder_name: Optional[str] = Field(None, max_length=255)
    account_number: Optional[str] = Field(None, max_length=50)
    ifsc: Optional[str] = Field(None, max_length=20)
    branch: Optional[str] = Field(None, max_length=100)

    # Wallet
    holder_user_id: Optional[int] = None

    # Project
    project_code: Optional[str] = Field(None, max_length=50)


class AccountResponse(BaseModel):
    """Schema for account response."""
    id: int
    kind: AccountKind
    name: str
    phone: Optional[str]
    address: Optional[str]
    daily_wage_minor: Optional[int]
    designation: Optional[str]
    bank_name: Optional[str]
    holder_name: Optional[str]
    account_number: Optional[str]
    ifsc: Optional[str]
    branch: Optional[str]
    holder_user_id: Optional[int]
    project_code: Optional[str]
    is_active: bool

    class Config:
        from_attributes = True


class AccountListResponse(BaseModel):
    accounts: List[AccountResponse]
    total: int


class BalanceResponse(BaseModel):
    """Balance under the account kind's sign convention."""
    account_id: int
    kind: AccountKind
    balance: MoneyResponse


class PendingResponse(BaseModel):
    account_id: int
    earned: MoneyResponse
    credits: MoneyResponse
    settled: MoneyResponse
    pending: MoneyResponse
    advance_outstanding: MoneyResponse
    net_payable: MoneyResponse


class ProjectionCheckResponse(BaseModel):
    account_id: int
    recomputed: MoneyResponse
    running: MoneyResponse
    consistent: bool
