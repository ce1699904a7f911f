"""
Payment Recorder (Domain Logic).

Records wage, advance and deduction payments to labourers, contractors and
vendors. Each payment is one debit against the payee's account.

Wage cap: a wage payment may not exceed what is pending for the payee.
The check and the append happen under the payee's account lock, so two
concurrent wage payments cannot both pass a check that only one fits.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, List

from sqlalchemy.ext.asyncio import AsyncSession

from siteledger.app.core.clock import Clock, system_clock
from siteledger.app.core.config import settings
from siteledger.app.core.exceptions import OverLimitError
from siteledger.app.core.locks import ACCOUNT_LOCK, resource_lock
from siteledger.app.db.session import atomic
from siteledger.app.domain.accounts.registry import get_account_of_kind
from siteledger.app.domain.ledger.projector import BalanceProjector, PendingPosition, EARNING_KINDS
from siteledger.app.domain.ledger.store import LedgerStore, NewLedgerEntry
from siteledger.app.domain.money import Money
from siteledger.app.models.account import Account
from siteledger.app.models.enums import AccountKind, EntryCategory, EntryDirection, PaymentKind, PaymentMode
from siteledger.app.models.ledger_entry import LedgerEntry
from siteledger.app.services.audit import AuditAction, log_event
from siteledger.app.services.earnings_feed import EarningsFeed, StaticEarningsFeed

logger = logging.getLogger("siteledger.payments")

PAYEE_KINDS = (AccountKind.LABOURER, AccountKind.CONTRACTOR, AccountKind.VENDOR)

PAYMENT_CATEGORIES = frozenset(kind.category for kind in PaymentKind)


@dataclass(frozen=True)
class PaymentSummary:
    account_id: int
    kind: AccountKind
    position: PendingPosition
    total_paid: Money
    total_advance: Money
    total_deduction: Money
    history: List[LedgerEntry]

    @property
    def earned(self) -> Money:
        return self.position.earned

    @property
    def pending(self) -> Money:
        return self.position.pending

    @property
    def advance_outstanding(self) -> Money:
        return self.position.advance_outstanding

    @property
    def net_payable(self) -> Money:
        return self.position.net_payable


def wage_cap_applies(kind: AccountKind) -> bool:
    if kind == AccountKind.CONTRACTOR:
        return settings.enforce_contractor_wage_cap
    return kind in (AccountKind.LABOURER, AccountKind.VENDOR)


def day_bounds(start: Optional[date], end: Optional[date]):
    """[start 00:00, day after end 00:00) in UTC; open where not given."""
    lower = datetime.combine(start, time.min, tzinfo=timezone.utc) if start else None
    upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc) if end else None
    return lower, upper


class PaymentRecorder:

    def __init__(
        self,
        db: AsyncSession,
        redis,
        earnings_feed: Optional[EarningsFeed] = None,
        clock: Clock = system_clock
    ):
        self.db = db
        self.redis = redis
        self.earnings_feed = earnings_feed or StaticEarningsFeed()
        self.clock = clock
        self.store = LedgerStore(db)
        self.projector = BalanceProjector(db, self.store)

    async def record_payment(
        self,
        account_id: int,
        kind: PaymentKind,
        amount: Money,
        mode: PaymentMode = PaymentMode.CASH,
        remarks: Optional[str] = None,
        actor_id: Optional[int] = None
    ) -> LedgerEntry:
        """
        Record a payment.

        Raises:
            NotFoundError: Unknown account.
            ValidationError: Not a payee account, or non-positive amount.
            OverLimitError: Wage above the pending amount (capped kinds only).
            UpstreamUnavailableError: Earnings could not be read for a capped wage.
        """
        payee = await get_account_of_kind(self.db, account_id, PAYEE_KINDS)
        capped = kind == PaymentKind.WAGE and wage_cap_applies(payee.kind)

        # Earnings live outside the ledger; read them before taking the lock.
        earned = await self.earnings_feed.earned(account_id) if capped else None

        async with resource_lock(self.redis, ACCOUNT_LOCK, account_id):
            async with atomic(self.db):
                if capped:
                    position = await self.projector.pending(account_id, earned)
                    if amount > position.pending:
                        logger.warning(
                            "Wage payment over pending amount rejected",
                            extra={
                                "account_id": account_id,
                                "pending_minor": position.pending.minor,
                                "requested_minor": amount.minor,
                            }
                        )
                        raise OverLimitError(position.pending, amount, account_id=account_id)

                entry = await self.store.append(NewLedgerEntry(
                    account_id=account_id,
                    direction=EntryDirection.DEBIT,
                    amount=amount,
                    category=kind.category,
                    occurred_at=self.clock.now(),
                    description=(remarks or f"{kind.value.title()} payment to {payee.name}")[:255],
                    payment_mode=mode,
                    recorded_by=actor_id,
                ))
                await log_event(
                    self.db, AuditAction.PAYMENT_RECORDED, actor_id=actor_id,
                    target_type="account", target_id=account_id,
                    metadata={
                        "entry_id": entry.id,
                        "kind": kind.value,
                        "amount_minor": amount.minor,
                        "mode": mode.value,
                    }
                )

        logger.info(
            "Payment recorded",
            extra={"account_id": account_id, "kind": kind.value, "amount_minor": amount.minor, "entry_id": entry.id}
        )
        return entry

    async def payment_summary(
        self,
        account_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
        earned: Optional[Money] = None
    ) -> PaymentSummary:
        """
        Totals and history of payments to one payee.

        Totals and history cover [start, end]; the pending position is all-time.
        ``earned`` overrides the earnings feed when given.
        """
        payee: Account = await get_account_of_kind(self.db, account_id, PAYEE_KINDS)
        if earned is None and payee.kind in EARNING_KINDS:
            earned = await self.earnings_feed.earned(account_id)
        position = await self.projector.pending(account_id, earned)

        lower, upper = day_bounds(start, end)
        totals = {category: Money.zero() for category in PAYMENT_CATEGORIES}
        history = []
        async for entry in self.store.entries_for(account_id, start=lower, end=upper):
            if entry.category not in PAYMENT_CATEGORIES:
                continue
            history.append(entry)
            if entry.reverses_entry_id is not None:
                totals[entry.category] = totals[entry.category] - Money(entry.amount_minor)
            else:
                totals[entry.category] = totals[entry.category] + Money(entry.amount_minor)

        return PaymentSummary(
            account_id=account_id,
            kind=payee.kind,
            position=position,
            total_paid=totals[EntryCategory.WAGE],
            total_advance=totals[EntryCategory.ADVANCE],
            total_deduction=totals[EntryCategory.DEDUCTION],
            history=history,
        )
