"""
Fund API Endpoints.

Allocations to wallets, bank transfers, deposits, borrowings and repayments.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from siteledger.app.core.clock import Clock
from siteledger.app.core.dependencies import get_actor_id, get_clock
from siteledger.app.core.redis_client import get_redis
from siteledger.app.db.session import get_db
from siteledger.app.domain.funds.service import FundService, FundMovement
from siteledger.app.domain.money import Money
from siteledger.app.schemas.funds import (
    AllocateRequest, TransferRequest, DepositRequest, BorrowRequest, RepayRequest,
    FundMovementResponse
)
from siteledger.app.schemas.ledger import LedgerEntryResponse
from siteledger.app.schemas.money import MoneyResponse

router = APIRouter(prefix="/funds", tags=["Funds"])


def get_fund_service(
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
    clock: Clock = Depends(get_clock)
) -> FundService:
    return FundService(db, redis, clock)


def movement_response(movement: FundMovement) -> FundMovementResponse:
    return FundMovementResponse(
        transfer_group=movement.transfer_group,
        amount=MoneyResponse.of(movement.amount),
        entries=[LedgerEntryResponse.model_validate(leg) for leg in movement.legs],
    )


@router.post("/allocate", response_model=FundMovementResponse, status_code=status.HTTP_201_CREATED)
async def allocate(
    data: AllocateRequest,
    actor_id: Optional[int] = Depends(get_actor_id),
    service: FundService = Depends(get_fund_service)
):
    """Move money from a bank account into a site wallet."""
    movement = await service.allocate(
        data.from_bank_id, data.to_wallet_id, Money.from_major(data.amount),
        actor_id=actor_id, description=data.description
    )
    return movement_response(movement)


@router.post("/transfer", response_model=FundMovementResponse, status_code=status.HTTP_201_CREATED)
async def transfer(
    data: TransferRequest,
    actor_id: Optional[int] = Depends(get_actor_id),
    service: FundService = Depends(get_fund_service)
):
    """Move money between two bank accounts."""
    movement = await service.transfer(
        data.from_bank_id, data.to_bank_id, Money.from_major(data.amount),
        actor_id=actor_id, description=data.description
    )
    return movement_response(movement)


@router.post("/deposit", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def deposit(
    data: DepositRequest,
    actor_id: Optional[int] = Depends(get_actor_id),
    service: FundService = Depends(get_fund_service)
):
    entry = await service.deposit(
        data.bank_id, Money.from_major(data.amount), source_mode=data.source_mode,
        actor_id=actor_id, description=data.description
    )
    return LedgerEntryResponse.model_validate(entry)


@router.post("/borrow", response_model=FundMovementResponse, status_code=status.HTTP_201_CREATED)
async def borrow(
    data: BorrowRequest,
    actor_id: Optional[int] = Depends(get_actor_id),
    service: FundService = Depends(get_fund_service)
):
    movement = await service.borrow(
        data.creditor_id, data.into_bank_id, Money.from_major(data.amount),
        actor_id=actor_id, description=data.description
    )
    return movement_response(movement)


@router.post("/repay", response_model=FundMovementResponse, status_code=status.HTTP_201_CREATED)
async def repay(
    data: RepayRequest,
    actor_id: Optional[int] = Depends(get_actor_id),
    service: FundService = Depends(get_fund_service)
):
    movement = await service.repay(
        data.creditor_id, data.from_bank_id, Money.from_major(data.amount),
        actor_id=actor_id, description=data.description
    )
    return movement_response(movement)
