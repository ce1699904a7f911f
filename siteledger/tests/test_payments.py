"""
Payment recorder tests.

Wage cap, uncapped advances and deductions, and payment summaries.
"""

from datetime import date

import pytest

from siteledger.app.core.config import settings
from siteledger.app.core.exceptions import (
    OverLimitError, UpstreamUnavailableError, ValidationError
)
from siteledger.app.domain.ledger.corrections import CorrectionService
from siteledger.app.domain.money import Money
from siteledger.app.domain.payments.recorder import PaymentRecorder, day_bounds, wage_cap_applies
from siteledger.app.models.enums import (
    AccountKind, EntryCategory, EntryDirection, PaymentKind, PaymentMode
)


class UnreachableFeed:
    async def earned(self, account_id, start=None, end=None):
        raise UpstreamUnavailableError("Attendance feed", "connection refused")


@pytest.fixture
async def labourer_id(open_account, earnings_feed):
    account_id = await open_account(AccountKind.LABOURER, "Ramesh", daily_wage=Money.from_major(600))
    earnings_feed.set(account_id, Money.from_major(3000))
    return account_id


# TEST 1: Wage cap
@pytest.mark.asyncio
async def test_wage_above_pending_is_rejected(payment_recorder, projector, labourer_id):
    with pytest.raises(OverLimitError) as exc:
        await payment_recorder.record_payment(labourer_id, PaymentKind.WAGE, Money.from_major(3500))
    assert exc.value.error_code == "ERR_OVER_LIMIT"
    assert exc.value.status_code == 422

    position = await projector.pending(labourer_id, Money.from_major(3000))
    assert position.pending == Money.from_major(3000)

    await payment_recorder.record_payment(labourer_id, PaymentKind.WAGE, Money.from_major(3000))
    position = await projector.pending(labourer_id, Money.from_major(3000))
    assert position.pending == Money.zero()


@pytest.mark.asyncio
async def test_payment_is_a_debit_with_mode(payment_recorder, labourer_id):
    entry = await payment_recorder.record_payment(
        labourer_id, PaymentKind.WAGE, Money.from_major(1000),
        mode=PaymentMode.UPI, remarks="Week 1", actor_id=2
    )
    assert entry.direction == EntryDirection.DEBIT
    assert entry.category == EntryCategory.WAGE
    assert entry.payment_mode == PaymentMode.UPI
    assert entry.description == "Week 1"
    assert entry.recorded_by == 2


@pytest.mark.asyncio
async def test_advances_and_deductions_are_not_capped(payment_recorder, labourer_id):
    advance = await payment_recorder.record_payment(labourer_id, PaymentKind.ADVANCE, Money.from_major(9000))
    deduction = await payment_recorder.record_payment(labourer_id, PaymentKind.DEDUCTION, Money.from_major(9000))
    assert advance.category == EntryCategory.ADVANCE
    assert deduction.category == EntryCategory.DEDUCTION


@pytest.mark.asyncio
async def test_advance_does_not_reduce_wage_headroom(payment_recorder, labourer_id):
    await payment_recorder.record_payment(labourer_id, PaymentKind.ADVANCE, Money.from_major(1000))
    # Advances are reported separately; the full pending wage can still be paid
    await payment_recorder.record_payment(labourer_id, PaymentKind.WAGE, Money.from_major(3000))


@pytest.mark.asyncio
async def test_contractor_wage_cap_follows_setting(payment_recorder, open_account, monkeypatch):
    contractor_id = await open_account(AccountKind.CONTRACTOR)

    await payment_recorder.record_payment(contractor_id, PaymentKind.WAGE, Money.from_major(500))

    monkeypatch.setattr(settings, "enforce_contractor_wage_cap", True)
    assert wage_cap_applies(AccountKind.CONTRACTOR)
    with pytest.raises(OverLimitError):
        await payment_recorder.record_payment(contractor_id, PaymentKind.WAGE, Money.from_major(1))


@pytest.mark.asyncio
async def test_vendor_wage_is_capped(payment_recorder, open_account, earnings_feed):
    vendor_id = await open_account(AccountKind.VENDOR)
    earnings_feed.set(vendor_id, Money.from_major(100))
    with pytest.raises(OverLimitError):
        await payment_recorder.record_payment(vendor_id, PaymentKind.WAGE, Money.from_major(101))


@pytest.mark.asyncio
async def test_only_payees_can_be_paid(payment_recorder, open_account):
    bank_id = await open_account(AccountKind.BANK_ACCOUNT)
    creditor_id = await open_account(AccountKind.CREDITOR)
    for account_id in (bank_id, creditor_id):
        with pytest.raises(ValidationError):
            await payment_recorder.record_payment(account_id, PaymentKind.ADVANCE, Money(100))


@pytest.mark.asyncio
async def test_unreachable_feed_blocks_capped_wages_only(db_session, mock_redis, clock, open_account):
    labourer = await open_account(AccountKind.LABOURER)
    recorder = PaymentRecorder(db_session, mock_redis, earnings_feed=UnreachableFeed(), clock=clock)

    with pytest.raises(UpstreamUnavailableError):
        await recorder.record_payment(labourer, PaymentKind.WAGE, Money(100))

    entry = await recorder.record_payment(labourer, PaymentKind.ADVANCE, Money(100))
    assert entry.id is not None


@pytest.mark.asyncio
async def test_wage_payment_takes_the_account_lock(payment_recorder, mock_redis, labourer_id):
    await payment_recorder.record_payment(labourer_id, PaymentKind.WAGE, Money(100))
    assert mock_redis.acquired == [f"siteledger:lock:account:{labourer_id}"]


# TEST 2: Summary
@pytest.mark.asyncio
async def test_payment_summary_totals(payment_recorder, clock, labourer_id):
    await payment_recorder.record_payment(labourer_id, PaymentKind.WAGE, Money.from_major(1000))
    await payment_recorder.record_payment(labourer_id, PaymentKind.ADVANCE, Money.from_major(400))
    clock.advance(days=2)
    await payment_recorder.record_payment(labourer_id, PaymentKind.WAGE, Money.from_major(500))
    await payment_recorder.record_payment(labourer_id, PaymentKind.DEDUCTION, Money.from_major(50))

    summary = await payment_recorder.payment_summary(labourer_id)

    assert summary.kind == AccountKind.LABOURER
    assert summary.earned == Money.from_major(3000)
    assert summary.total_paid == Money.from_major(1500)
    assert summary.total_advance == Money.from_major(400)
    assert summary.total_deduction == Money.from_major(50)
    assert summary.pending == Money.from_major(1450)
    assert summary.advance_outstanding == Money.from_major(400)
    assert summary.net_payable == Money.from_major(1050)
    assert len(summary.history) == 4


@pytest.mark.asyncio
async def test_payment_summary_date_range(payment_recorder, clock, labourer_id):
    await payment_recorder.record_payment(labourer_id, PaymentKind.WAGE, Money.from_major(1000))
    clock.advance(days=2)
    await payment_recorder.record_payment(labourer_id, PaymentKind.WAGE, Money.from_major(500))

    summary = await payment_recorder.payment_summary(
        labourer_id, start=date(2024, 1, 3), end=date(2024, 1, 3)
    )

    assert summary.total_paid == Money.from_major(500)
    assert len(summary.history) == 1
    # Pending stays all-time
    assert summary.pending == Money.from_major(1500)


@pytest.mark.asyncio
async def test_payment_summary_earned_override(payment_recorder, labourer_id):
    summary = await payment_recorder.payment_summary(labourer_id, earned=Money.from_major(10))
    assert summary.earned == Money.from_major(10)


@pytest.mark.asyncio
async def test_reversed_wage_frees_headroom(db_session, payment_recorder, clock, labourer_id):
    entry = await payment_recorder.record_payment(labourer_id, PaymentKind.WAGE, Money.from_major(3000))
    entry_id = entry.id

    await CorrectionService(db_session, clock).reverse(entry_id, "paid to wrong labourer")

    summary = await payment_recorder.payment_summary(labourer_id)
    assert summary.total_paid == Money.zero()
    assert summary.pending == Money.from_major(3000)
    await payment_recorder.record_payment(labourer_id, PaymentKind.WAGE, Money.from_major(3000))


def test_day_bounds_cover_whole_days():
    lower, upper = day_bounds(date(2024, 1, 1), date(2024, 1, 31))
    assert lower.isoformat() == "2024-01-01T00:00:00+00:00"
    assert upper.isoformat() == "2024-02-01T00:00:00+00:00"
    assert day_bounds(None, None) == (None, None)
