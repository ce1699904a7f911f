"""
Payment API Endpoints.

Wage, advance and deduction payments to labourers, contractors and vendors.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from siteledger.app.core.clock import Clock
from siteledger.app.core.dependencies import get_actor_id, get_clock, get_earnings_feed
from siteledger.app.core.redis_client import get_redis
from siteledger.app.db.session import get_db
from siteledger.app.domain.money import Money
from siteledger.app.domain.payments.recorder import PaymentRecorder
from siteledger.app.schemas.ledger import LedgerEntryResponse
from siteledger.app.schemas.money import MoneyResponse
from siteledger.app.schemas.payment import PaymentCreate, PaymentSummaryResponse
from siteledger.app.services.earnings_feed import EarningsFeed

router = APIRouter(prefix="/payments", tags=["Payments"])


def get_payment_recorder(
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
    clock: Clock = Depends(get_clock),
    earnings_feed: EarningsFeed = Depends(get_earnings_feed)
) -> PaymentRecorder:
    return PaymentRecorder(db, redis, earnings_feed=earnings_feed, clock=clock)


@router.post("", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(
    data: PaymentCreate,
    actor_id: Optional[int] = Depends(get_actor_id),
    recorder: PaymentRecorder = Depends(get_payment_recorder)
):
    """
    Record a payment.

    Wage payments above the pending amount are rejected with 422 (ERR_OVER_LIMIT).
    Pending comes from the earnings feed, so capped wages need
    ``attendance_feed_url`` configured.
    """
    entry = await recorder.record_payment(
        data.account_id,
        data.kind,
        Money.from_major(data.amount),
        mode=data.mode,
        remarks=data.remarks,
        actor_id=actor_id,
    )
    return LedgerEntryResponse.model_validate(entry)


@router.get("/accounts/{account_id}/summary", response_model=PaymentSummaryResponse)
async def payment_summary(
    account_id: int,
    start: Optional[date] = Query(None, description="First day (inclusive)"),
    end: Optional[date] = Query(None, description="Last day (inclusive)"),
    earned: Optional[Decimal] = Query(None, description="Override the earnings feed (rupees)"),
    recorder: PaymentRecorder = Depends(get_payment_recorder)
):
    summary = await recorder.payment_summary(
        account_id,
        start=start,
        end=end,
        earned=Money.from_major(earned) if earned is not None else None,
    )
    return PaymentSummaryResponse(
        account_id=summary.account_id,
        kind=summary.kind,
        earned=MoneyResponse.of(summary.earned),
        total_paid=MoneyResponse.of(summary.total_paid),
        total_advance=MoneyResponse.of(summary.total_advance),
        total_deduction=MoneyResponse.of(summary.total_deduction),
        pending=MoneyResponse.of(summary.pending),
        advance_outstanding=MoneyResponse.of(summary.advance_outstanding),
        net_payable=MoneyResponse.of(summary.net_payable),
        history=[LedgerEntryResponse.model_validate(e) for e in summary.history],
    )
