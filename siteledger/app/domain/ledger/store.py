"""
Ledger Entry Store.

Append-only access to ledger entries. There is deliberately no update or
delete path: a correction is a new entry in the opposite direction that
points back at the one it reverses.
"""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional, List, AsyncIterator

from sqlalchemy import select, update, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from siteledger.app.core.config import settings
from siteledger.app.core.exceptions import ValidationError, ConflictError, NotFoundError
from siteledger.app.domain.money import Money, MAX_MINOR
from siteledger.app.models.account import Account, AccountBalance
from siteledger.app.models.enums import EntryDirection, EntryCategory, PaymentMode
from siteledger.app.models.ledger_entry import LedgerEntry

logger = logging.getLogger("siteledger.ledger")


@dataclass(frozen=True)
class NewLedgerEntry:
    """An entry to be appended; becomes an immutable LedgerEntry row."""
    account_id: int
    direction: EntryDirection
    amount: Money
    category: EntryCategory
    occurred_at: datetime
    description: Optional[str] = None
    counterpart_account_id: Optional[int] = None
    source_type: Optional[str] = None
    source_id: Optional[int] = None
    payment_mode: Optional[PaymentMode] = None
    recorded_by: Optional[int] = None
    reverses_entry_id: Optional[int] = None


def advance_delta(direction: EntryDirection, category: EntryCategory, amount_minor: int) -> int:
    """Change in outstanding advances: an advance debit adds, its reversal (a credit) removes."""
    if category != EntryCategory.ADVANCE:
        return 0
    return amount_minor if direction == EntryDirection.DEBIT else -amount_minor


class EntryStream:
    """
    Lazy, restartable view over one account's entries.

    Every ``async for`` starts a fresh query and walks the entries in
    (occurred_at, id) order, fetching them in keyset-paginated batches.
    """

    def __init__(
        self,
        db: AsyncSession,
        account_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        batch_size: Optional[int] = None
    ):
        self.db = db
        self.account_id = account_id
        self.start = start
        self.end = end
        self.batch_size = batch_size or settings.entry_stream_batch_size

    def __aiter__(self) -> AsyncIterator[LedgerEntry]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[LedgerEntry]:
        last_key = None
        while True:
            query = select(LedgerEntry).where(LedgerEntry.account_id == self.account_id)
            if self.start is not None:
                query = query.where(LedgerEntry.occurred_at >= self.start)
            if self.end is not None:
                query = query.where(LedgerEntry.occurred_at < self.end)
            if last_key is not None:
                last_occurred, last_id = last_key
                query = query.where(
                    or_(
                        LedgerEntry.occurred_at > last_occurred,
                        and_(LedgerEntry.occurred_at == last_occurred, LedgerEntry.id > last_id),
                    )
                )
            query = query.order_by(LedgerEntry.occurred_at, LedgerEntry.id).limit(self.batch_size)

            result = await self.db.execute(query)
            batch = result.scalars().all()
            for entry in batch:
                yield entry

            if len(batch) < self.batch_size:
                return
            last_key = (batch[-1].occurred_at, batch[-1].id)

    async def to_list(self) -> List[LedgerEntry]:
        return [entry async for entry in self]


class LedgerStore:
    """
    Append-only ledger.

    Writes join the caller's unit of work; the caller commits. Every append
    also bumps the account's balance snapshot inside the same transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(self, entry: NewLedgerEntry, transfer_group: Optional[str] = None) -> LedgerEntry:
        """
        Append one entry.

        Returns:
            The persisted LedgerEntry (flushed, so ``id`` is set)

        Raises:
            ValidationError: If the amount is not positive or too large, the
                account is unknown, or the running total would overflow.
        """
        await self._validate(entry)

        row = LedgerEntry(
            account_id=entry.account_id,
            direction=entry.direction,
            category=entry.category,
            amount_minor=entry.amount.minor,
            description=entry.description,
            payment_mode=entry.payment_mode,
            occurred_at=entry.occurred_at,
            counterpart_account_id=entry.counterpart_account_id,
            transfer_group=transfer_group,
            source_type=entry.source_type,
            source_id=entry.source_id,
            reverses_entry_id=entry.reverses_entry_id,
            recorded_by=entry.recorded_by,
        )
        self.db.add(row)
        await self.db.flush()

        await self._apply_to_snapshot(row)

        logger.info(
            "Ledger entry appended",
            extra={
                "entry_id": row.id,
                "account_id": row.account_id,
                "direction": row.direction.value,
                "category": row.category.value,
                "amount_minor": row.amount_minor,
            }
        )
        return row

    async def append_pair(self, first: NewLedgerEntry, second: NewLedgerEntry) -> tuple[LedgerEntry, LedgerEntry]:
        """
        Append the two legs of a paired operation under one transfer group.

        Both legs are validated before either is written, and both join the
        caller's transaction, so they commit or roll back together.
        """
        await self._validate(first)
        await self._validate(second)

        group = str(uuid.uuid4())
        first_row = await self.append(
            replace(first, counterpart_account_id=first.counterpart_account_id or second.account_id),
            transfer_group=group
        )
        second_row = await self.append(
            replace(second, counterpart_account_id=second.counterpart_account_id or first.account_id),
            transfer_group=group
        )
        return first_row, second_row

    def entries_for(
        self,
        account_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> EntryStream:
        """Entries of one account in [start, end), oldest first."""
        return EntryStream(self.db, account_id, start=start, end=end)

    async def get(self, entry_id: int) -> LedgerEntry:
        entry = await self.db.get(LedgerEntry, entry_id)
        if entry is None:
            raise NotFoundError("Ledger entry", entry_id)
        return entry

    async def entries_in_group(self, transfer_group: str) -> List[LedgerEntry]:
        result = await self.db.execute(
            select(LedgerEntry)
            .where(LedgerEntry.transfer_group == transfer_group)
            .order_by(LedgerEntry.id)
        )
        return list(result.scalars().all())

    async def reverse(
        self,
        entry_id: int,
        occurred_at: datetime,
        reason: str,
        actor_id: Optional[int] = None
    ) -> List[LedgerEntry]:
        """
        Post offsetting entries for ``entry_id``.

        A leg of a paired operation is reversed together with its partner so
        the pair stays balanced.

        Raises:
            NotFoundError: Unknown entry.
            ValidationError: The entry is itself a reversal.
            ConflictError: The entry was already reversed.
        """
        original = await self.get(entry_id)
        if original.reverses_entry_id is not None:
            raise ValidationError(
                f"Ledger entry {entry_id} is a reversal and cannot be reversed again",
                details={"entry_id": entry_id}
            )

        if original.transfer_group:
            targets = await self.entries_in_group(original.transfer_group)
        else:
            targets = [original]

        target_ids = [t.id for t in targets]
        already = await self.db.execute(
            select(LedgerEntry.reverses_entry_id).where(LedgerEntry.reverses_entry_id.in_(target_ids))
        )
        if already.scalars().first() is not None:
            raise ConflictError(
                f"Ledger entry {entry_id} has already been reversed",
                details={"entry_id": entry_id}
            )

        group = str(uuid.uuid4()) if len(targets) > 1 else None
        reversals = []
        for target in targets:
            reversal = NewLedgerEntry(
                account_id=target.account_id,
                direction=target.direction.opposite,
                amount=Money(target.amount_minor),
                category=target.category,
                occurred_at=occurred_at,
                description=f"Reversal of entry #{target.id}: {reason}"[:255],
                counterpart_account_id=target.counterpart_account_id,
                source_type="ledger_entry",
                source_id=target.id,
                payment_mode=target.payment_mode,
                recorded_by=actor_id,
                reverses_entry_id=target.id,
            )
            reversals.append(await self.append(reversal, transfer_group=group))
        return reversals

    async def _validate(self, entry: NewLedgerEntry) -> None:
        if not entry.amount.is_positive:
            raise ValidationError(
                "Amount must be greater than zero",
                details={"account_id": entry.account_id, "amount_minor": entry.amount.minor}
            )
        if entry.amount.minor > MAX_MINOR:
            raise ValidationError(
                "Amount exceeds the largest supported amount",
                details={"account_id": entry.account_id, "amount_minor": entry.amount.minor}
            )
        if entry.occurred_at.tzinfo is None:
            raise ValidationError("occurred_at must be timezone-aware")
        account = await self.db.get(Account, entry.account_id)
        if account is None:
            raise ValidationError(
                f"Account {entry.account_id} does not exist",
                details={"account_id": entry.account_id}
            )

        # Running totals only grow, so bound the side this entry adds to.
        totals = (await self.db.execute(
            select(AccountBalance.total_credits_minor, AccountBalance.total_debits_minor)
            .where(AccountBalance.account_id == entry.account_id)
        )).first()
        if totals is not None:
            credits, debits = totals
            current = credits if entry.direction == EntryDirection.CREDIT else debits
            if current + entry.amount.minor > MAX_MINOR:
                raise ValidationError(
                    f"Account {entry.account_id} running total would exceed the largest supported amount",
                    details={
                        "account_id": entry.account_id,
                        "direction": entry.direction.value,
                        "total_minor": current,
                        "amount_minor": entry.amount.minor,
                    }
                )

    async def _apply_to_snapshot(self, row: LedgerEntry) -> None:
        credit = row.amount_minor if row.direction == EntryDirection.CREDIT else 0
        debit = row.amount_minor if row.direction == EntryDirection.DEBIT else 0
        advance = advance_delta(row.direction, row.category, row.amount_minor)

        stmt = (
            update(AccountBalance)
            .where(AccountBalance.account_id == row.account_id)
            .values(
                total_credits_minor=AccountBalance.total_credits_minor + credit,
                total_debits_minor=AccountBalance.total_debits_minor + debit,
                net_advance_minor=AccountBalance.net_advance_minor + advance,
                entry_count=AccountBalance.entry_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            # First entry for an account opened without a snapshot row.
            self.db.add(AccountBalance(
                account_id=row.account_id,
                total_credits_minor=credit,
                total_debits_minor=debit,
                net_advance_minor=advance,
                entry_count=1,
            ))
            await self.db.flush()
