"""
Account API Endpoints.

Opening accounts and reading their balances.
"""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession

from siteledger.app.core.dependencies import get_actor_id
from siteledger.app.db.session import get_db, atomic
from siteledger.app.domain.accounts.registry import AccountRegistry
from siteledger.app.domain.ledger.projector import BalanceProjector
from siteledger.app.domain.money import Money
from siteledger.app.models.enums import AccountKind
from siteledger.app.schemas.account import (
    AccountCreate, AccountResponse, AccountListResponse,
    BalanceResponse, PendingResponse, ProjectionCheckResponse
)
from siteledger.app.schemas.money import MoneyResponse

router = APIRouter(prefix="/accounts", tags=["Accounts"])


@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def open_account(
    data: AccountCreate,
    actor_id: Optional[int] = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db)
):
    """Open an account of any kind."""
    attributes = data.model_dump(exclude={"kind", "name"}, exclude_none=True)
    if "daily_wage" in attributes:
        attributes["daily_wage"] = Money.from_major(attributes["daily_wage"])

    account = await AccountRegistry(db).open_account(data.kind, data.name, actor_id=actor_id, **attributes)
    return AccountResponse.model_validate(account)


@router.get("", response_model=AccountListResponse)
async def list_accounts(
    kind: Optional[AccountKind] = Query(None, description="Filter by account kind"),
    db: AsyncSession = Depends(get_db)
):
    accounts = await AccountRegistry(db).list_accounts(kind=kind)
    return AccountListResponse(
        accounts=[AccountResponse.model_validate(a) for a in accounts],
        total=len(accounts)
    )


@router.get("/{account_id}", response_model=AccountResponse)
async def get_account(account_id: int, db: AsyncSession = Depends(get_db)):
    account = await AccountRegistry(db).get(account_id)
    return AccountResponse.model_validate(account)


@router.get("/{account_id}/balance", response_model=BalanceResponse)
async def get_balance(account_id: int, db: AsyncSession = Depends(get_db)):
    """
    Current balance.

    Bank accounts and wallets: cash held. Party accounts: net position,
    negative while the organization still owes the party.
    """
    projector = BalanceProjector(db)
    account = await projector.get_account(account_id)
    balance = await projector.balance(account_id)
    return BalanceResponse(account_id=account_id, kind=account.kind, balance=MoneyResponse.of(balance))


@router.get("/{account_id}/pending", response_model=PendingResponse)
async def get_pending(
    account_id: int,
    earned: Optional[Decimal] = Query(None, description="Earned amount in rupees; zero when omitted"),
    db: AsyncSession = Depends(get_db)
):
    """Pending amount for a party account."""
    earned_money = Money.from_major(earned) if earned is not None else None
    position = await BalanceProjector(db).pending(account_id, earned_money)
    return PendingResponse(
        account_id=account_id,
        earned=MoneyResponse.of(position.earned),
        credits=MoneyResponse.of(position.credits),
        settled=MoneyResponse.of(position.settled),
        pending=MoneyResponse.of(position.pending),
        advance_outstanding=MoneyResponse.of(position.advance_outstanding),
        net_payable=MoneyResponse.of(position.net_payable),
    )


@router.get("/{account_id}/verify", response_model=ProjectionCheckResponse)
async def verify_balance(account_id: int, db: AsyncSession = Depends(get_db)):
    """Compare the folded ledger balance with the maintained snapshot."""
    check = await BalanceProjector(db).verify(account_id)
    return ProjectionCheckResponse(
        account_id=account_id,
        recomputed=MoneyResponse.of(check.recomputed),
        running=MoneyResponse.of(check.running),
        consistent=check.consistent,
    )


@router.post("/{account_id}/rebuild-snapshot", response_model=BalanceResponse)
async def rebuild_snapshot(account_id: int, db: AsyncSession = Depends(get_db)):
    """Re-derive the balance snapshot from the ledger."""
    projector = BalanceProjector(db)
    account = await projector.get_account(account_id)
    async with atomic(db):
        balance = await projector.rebuild_snapshot(account_id)
    return BalanceResponse(account_id=account_id, kind=account.kind, balance=MoneyResponse.of(balance))
