"""
Balance Projector.

Derives balances from ledger entries. Two read paths exist and must agree:

- recompute: fold every entry of the account (system of record)
- running: read the incrementally maintained AccountBalance snapshot
"""

import logging
from dataclasses import dataclass
from typing import AsyncIterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from siteledger.app.core.exceptions import NotFoundError, ValidationError
from siteledger.app.domain.ledger.store import LedgerStore, advance_delta
from siteledger.app.domain.money import Money
from siteledger.app.models.account import Account, AccountBalance
from siteledger.app.models.enums import AccountKind, EntryDirection, EntryCategory
from siteledger.app.models.ledger_entry import LedgerEntry

logger = logging.getLogger("siteledger.ledger")


# Cash held: balance = credits - debits
ASSET_KINDS = frozenset({AccountKind.BANK_ACCOUNT, AccountKind.WALLET})

# Counterparties: balance = debits - credits, negative while the organization owes them
PARTY_KINDS = frozenset({
    AccountKind.LABOURER,
    AccountKind.CONTRACTOR,
    AccountKind.VENDOR,
    AccountKind.CREDITOR,
    AccountKind.PROJECT,
})

# Kinds whose earned amount comes from the attendance feed
EARNING_KINDS = frozenset({AccountKind.LABOURER, AccountKind.CONTRACTOR, AccountKind.VENDOR})

_missing = set(AccountKind) - (ASSET_KINDS | PARTY_KINDS)
if _missing or ASSET_KINDS & PARTY_KINDS:
    raise RuntimeError(f"Sign convention must cover every account kind exactly once: {sorted(_missing)}")


def entry_sign(kind: AccountKind, direction: EntryDirection) -> int:
    """+1 or -1: how an entry in ``direction`` moves the balance of a ``kind`` account."""
    if kind in ASSET_KINDS:
        return 1 if direction == EntryDirection.CREDIT else -1
    return 1 if direction == EntryDirection.DEBIT else -1


def signed_amount(kind: AccountKind, entry: LedgerEntry) -> Money:
    return Money(entry.amount_minor * entry_sign(kind, entry.direction))


@dataclass(frozen=True)
class EntryTotals:
    credits: Money
    debits: Money
    net_advance: Money
    entry_count: int

    @classmethod
    def empty(cls) -> "EntryTotals":
        return cls(Money.zero(), Money.zero(), Money.zero(), 0)

    @classmethod
    def from_snapshot(cls, snapshot: AccountBalance) -> "EntryTotals":
        return cls(
            credits=Money(snapshot.total_credits_minor),
            debits=Money(snapshot.total_debits_minor),
            net_advance=Money(snapshot.net_advance_minor),
            entry_count=snapshot.entry_count,
        )

    def add(self, entry: LedgerEntry) -> "EntryTotals":
        amount = Money(entry.amount_minor)
        advance = Money(advance_delta(entry.direction, entry.category, entry.amount_minor))
        if entry.direction == EntryDirection.CREDIT:
            return EntryTotals(self.credits + amount, self.debits, self.net_advance + advance, self.entry_count + 1)
        return EntryTotals(self.credits, self.debits + amount, self.net_advance + advance, self.entry_count + 1)

    def balance_for(self, kind: AccountKind) -> Money:
        if kind in ASSET_KINDS:
            return self.credits - self.debits
        return self.debits - self.credits


@dataclass(frozen=True)
class PendingPosition:
    """What the organization still owes a party account."""
    account_id: int
    earned: Money
    credits: Money
    settled: Money  # debits excluding advances
    advance_outstanding: Money

    @property
    def pending(self) -> Money:
        return self.earned + self.credits - self.settled

    @property
    def net_payable(self) -> Money:
        return self.pending - self.advance_outstanding


@dataclass(frozen=True)
class ProjectionCheck:
    account_id: int
    recomputed: Money
    running: Money

    @property
    def consistent(self) -> bool:
        return self.recomputed == self.running


async def afold_entries(entries: AsyncIterable[LedgerEntry]) -> EntryTotals:
    totals = EntryTotals.empty()
    async for entry in entries:
        totals = totals.add(entry)
    return totals


class BalanceProjector:
    """Read side of the ledger."""

    def __init__(self, db: AsyncSession, store: Optional[LedgerStore] = None):
        self.db = db
        self.store = store or LedgerStore(db)

    async def get_account(self, account_id: int) -> Account:
        account = await self.db.get(Account, account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        return account

    async def balance(self, account_id: int) -> Money:
        """Balance under the account kind's sign convention (snapshot path)."""
        return await self.running_balance(account_id)

    async def recompute_balance(self, account_id: int) -> Money:
        account = await self.get_account(account_id)
        totals = await afold_entries(self.store.entries_for(account_id))
        return totals.balance_for(account.kind)

    async def running_balance(self, account_id: int) -> Money:
        account = await self.get_account(account_id)
        totals = await self._snapshot_totals(account_id)
        return totals.balance_for(account.kind)

    async def pending(self, account_id: int, earned: Optional[Money] = None) -> PendingPosition:
        """
        Pending amount for a party account.

        Args:
            account_id: Party account
            earned: Attendance-derived earnings; ignored (zero) for creditors and projects

        Raises:
            NotFoundError: Unknown account
            ValidationError: Asset accounts have no pending amount
        """
        account = await self.get_account(account_id)
        totals = await self._snapshot_totals(account_id)
        return self._pending_from(account, totals, earned)

    async def recompute_pending(self, account_id: int, earned: Optional[Money] = None) -> PendingPosition:
        account = await self.get_account(account_id)
        totals = await afold_entries(self.store.entries_for(account_id))
        return self._pending_from(account, totals, earned)

    async def verify(self, account_id: int) -> ProjectionCheck:
        """Compare the folded balance with the snapshot; log when they differ."""
        check = ProjectionCheck(
            account_id=account_id,
            recomputed=await self.recompute_balance(account_id),
            running=await self.running_balance(account_id),
        )
        if not check.consistent:
            logger.warning(
                "Balance snapshot out of sync with ledger",
                extra={
                    "account_id": account_id,
                    "recomputed_minor": check.recomputed.minor,
                    "running_minor": check.running.minor,
                }
            )
        return check

    async def rebuild_snapshot(self, account_id: int) -> Money:
        """Re-derive the snapshot row from the entries. Caller commits."""
        account = await self.get_account(account_id)
        totals = await afold_entries(self.store.entries_for(account_id))

        snapshot = await self.db.get(AccountBalance, account_id, populate_existing=True)
        if snapshot is None:
            snapshot = AccountBalance(account_id=account_id)
            self.db.add(snapshot)
        snapshot.total_credits_minor = totals.credits.minor
        snapshot.total_debits_minor = totals.debits.minor
        snapshot.net_advance_minor = totals.net_advance.minor
        snapshot.entry_count = totals.entry_count
        await self.db.flush()

        logger.info("Balance snapshot rebuilt", extra={"account_id": account_id, "entries": totals.entry_count})
        return totals.balance_for(account.kind)

    async def _snapshot_totals(self, account_id: int) -> EntryTotals:
        result = await self.db.execute(
            select(AccountBalance)
            .where(AccountBalance.account_id == account_id)
            .execution_options(populate_existing=True)
        )
        snapshot = result.scalar_one_or_none()
        if snapshot is None:
            return EntryTotals.empty()
        return EntryTotals.from_snapshot(snapshot)

    def _pending_from(self, account: Account, totals: EntryTotals, earned) -> PendingPosition:
        if account.kind in ASSET_KINDS:
            raise ValidationError(
                f"Account {account.id} is a {account.kind.value}; pending applies to party accounts only",
                details={"account_id": account.id, "kind": account.kind.value}
            )
        if account.kind not in EARNING_KINDS or earned is None:
            earned = Money.zero()
        return PendingPosition(
            account_id=account.id,
            earned=earned,
            credits=totals.credits,
            settled=totals.debits - totals.net_advance,
            advance_outstanding=totals.net_advance,
        )
