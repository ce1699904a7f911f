"""
Fund Service (Domain Logic).

Moves money between cash accounts. Paired operations write both legs in one
transaction under a shared transfer group, and the legs net to zero under
the per-kind sign convention.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from siteledger.app.core.clock import Clock, system_clock
from siteledger.app.core.exceptions import (
    ValidationError, SameAccountError, OverLimitError
)
from siteledger.app.core.locks import ACCOUNT_LOCK, resource_lock
from siteledger.app.db.session import atomic
from siteledger.app.domain.ledger.projector import BalanceProjector
from siteledger.app.domain.ledger.store import LedgerStore, NewLedgerEntry
from siteledger.app.domain.money import Money
from siteledger.app.domain.accounts.registry import get_account_of_kind
from siteledger.app.models.enums import AccountKind, EntryCategory, EntryDirection, PaymentMode
from siteledger.app.models.ledger_entry import LedgerEntry
from siteledger.app.services.audit import AuditAction, log_event

logger = logging.getLogger("siteledger.funds")


@dataclass(frozen=True)
class FundMovement:
    """The two legs of a paired operation."""
    transfer_group: str
    amount: Money
    debit_entry: Optional[LedgerEntry]
    credit_entry: Optional[LedgerEntry]
    legs: tuple

    @property
    def entry_ids(self) -> list:
        return [leg.id for leg in self.legs]


class FundService:

    def __init__(self, db: AsyncSession, redis, clock: Clock = system_clock):
        self.db = db
        self.redis = redis
        self.clock = clock
        self.store = LedgerStore(db)

    async def allocate(
        self,
        from_bank_id: int,
        to_wallet_id: int,
        amount: Money,
        actor_id: Optional[int] = None,
        description: Optional[str] = None
    ) -> FundMovement:
        """Bank -> wallet: debit the bank, credit the wallet."""
        self._require_positive(amount)
        async with atomic(self.db):
            bank = await get_account_of_kind(self.db, from_bank_id, AccountKind.BANK_ACCOUNT)
            wallet = await get_account_of_kind(self.db, to_wallet_id, AccountKind.WALLET)
            movement = await self._post_pair(
                self._leg(bank.id, EntryDirection.DEBIT, amount, EntryCategory.WALLET_ALLOCATION,
                          description or f"Allocated to {wallet.name}", actor_id),
                self._leg(wallet.id, EntryDirection.CREDIT, amount, EntryCategory.WALLET_ALLOCATION,
                          description or f"Allocated from {bank.name}", actor_id),
            )
            await self._audit(AuditAction.FUNDS_ALLOCATED, movement, actor_id, from_bank_id, to_wallet_id)
        return movement

    async def transfer(
        self,
        from_bank_id: int,
        to_bank_id: int,
        amount: Money,
        actor_id: Optional[int] = None,
        description: Optional[str] = None
    ) -> FundMovement:
        """
        Bank -> bank.

        Raises:
            SameAccountError: Source and destination are the same account.
        """
        if from_bank_id == to_bank_id:
            raise SameAccountError(from_bank_id)
        self._require_positive(amount)
        async with atomic(self.db):
            source = await get_account_of_kind(self.db, from_bank_id, AccountKind.BANK_ACCOUNT)
            destination = await get_account_of_kind(self.db, to_bank_id, AccountKind.BANK_ACCOUNT)
            movement = await self._post_pair(
                self._leg(source.id, EntryDirection.DEBIT, amount, EntryCategory.BANK_TRANSFER,
                          description or f"Transfer to {destination.name}", actor_id),
                self._leg(destination.id, EntryDirection.CREDIT, amount, EntryCategory.BANK_TRANSFER,
                          description or f"Transfer from {source.name}", actor_id),
            )
            await self._audit(AuditAction.FUNDS_TRANSFERRED, movement, actor_id, from_bank_id, to_bank_id)
        return movement

    async def deposit(
        self,
        bank_id: int,
        amount: Money,
        source_mode: PaymentMode = PaymentMode.CASH,
        actor_id: Optional[int] = None,
        description: Optional[str] = None
    ) -> LedgerEntry:
        """Money entering a bank account from outside the ledger (single credit)."""
        self._require_positive(amount)
        async with atomic(self.db):
            bank = await get_account_of_kind(self.db, bank_id, AccountKind.BANK_ACCOUNT)
            entry = await self.store.append(NewLedgerEntry(
                account_id=bank.id,
                direction=EntryDirection.CREDIT,
                amount=amount,
                category=EntryCategory.DEPOSIT,
                occurred_at=self.clock.now(),
                description=description or f"Deposit ({source_mode.value})",
                payment_mode=source_mode,
                recorded_by=actor_id,
            ))
            await log_event(
                self.db, AuditAction.FUNDS_DEPOSITED, actor_id=actor_id,
                target_type="account", target_id=bank.id,
                metadata={"entry_id": entry.id, "amount_minor": amount.minor, "mode": source_mode.value}
            )

        logger.info("Deposit recorded", extra={"bank_id": bank_id, "amount_minor": amount.minor, "entry_id": entry.id})
        return entry

    async def borrow(
        self,
        creditor_id: int,
        into_bank_id: int,
        amount: Money,
        actor_id: Optional[int] = None,
        description: Optional[str] = None
    ) -> FundMovement:
        """Loan received: credit the creditor (now owed) and credit the bank (cash in)."""
        self._require_positive(amount)
        async with atomic(self.db):
            creditor = await get_account_of_kind(self.db, creditor_id, AccountKind.CREDITOR)
            bank = await get_account_of_kind(self.db, into_bank_id, AccountKind.BANK_ACCOUNT)
            movement = await self._post_pair(
                self._leg(creditor.id, EntryDirection.CREDIT, amount, EntryCategory.BORROWING,
                          description or f"Borrowed into {bank.name}", actor_id),
                self._leg(bank.id, EntryDirection.CREDIT, amount, EntryCategory.BORROWING,
                          description or f"Loan from {creditor.name}", actor_id),
            )
            await self._audit(AuditAction.FUNDS_BORROWED, movement, actor_id, creditor_id, into_bank_id)
        return movement

    async def repay(
        self,
        creditor_id: int,
        from_bank_id: int,
        amount: Money,
        actor_id: Optional[int] = None,
        description: Optional[str] = None
    ) -> FundMovement:
        """
        Loan repayment: debit the creditor and debit the bank.

        Raises:
            OverLimitError: Repaying more than is owed to the creditor.
        """
        self._require_positive(amount)
        async with resource_lock(self.redis, ACCOUNT_LOCK, creditor_id):
            async with atomic(self.db):
                creditor = await get_account_of_kind(self.db, creditor_id, AccountKind.CREDITOR)
                bank = await get_account_of_kind(self.db, from_bank_id, AccountKind.BANK_ACCOUNT)

                owed = (await BalanceProjector(self.db, self.store).pending(creditor.id)).pending
                if amount > owed:
                    raise OverLimitError(owed, amount, account_id=creditor.id)

                movement = await self._post_pair(
                    self._leg(creditor.id, EntryDirection.DEBIT, amount, EntryCategory.REPAYMENT,
                              description or f"Repaid from {bank.name}", actor_id),
                    self._leg(bank.id, EntryDirection.DEBIT, amount, EntryCategory.REPAYMENT,
                              description or f"Repayment to {creditor.name}", actor_id),
                )
                await self._audit(AuditAction.LOAN_REPAID, movement, actor_id, creditor_id, from_bank_id)
        return movement

    def _leg(
        self,
        account_id: int,
        direction: EntryDirection,
        amount: Money,
        category: EntryCategory,
        description: str,
        actor_id: Optional[int]
    ) -> NewLedgerEntry:
        return NewLedgerEntry(
            account_id=account_id,
            direction=direction,
            amount=amount,
            category=category,
            occurred_at=self.clock.now(),
            description=description[:255],
            recorded_by=actor_id,
        )

    async def _post_pair(self, first: NewLedgerEntry, second: NewLedgerEntry) -> FundMovement:
        first_row, second_row = await self.store.append_pair(first, second)
        by_direction = {first_row.direction: first_row, second_row.direction: second_row}
        movement = FundMovement(
            transfer_group=first_row.transfer_group,
            amount=first.amount,
            debit_entry=by_direction.get(EntryDirection.DEBIT),
            credit_entry=by_direction.get(EntryDirection.CREDIT),
            legs=(first_row, second_row),
        )
        logger.info(
            "Paired entries posted",
            extra={
                "transfer_group": movement.transfer_group,
                "category": first.category.value,
                "amount_minor": first.amount.minor,
                "accounts": [first.account_id, second.account_id],
            }
        )
        return movement

    async def _audit(self, action: str, movement: FundMovement, actor_id, from_id: int, to_id: int) -> None:
        await log_event(
            self.db, action, actor_id=actor_id,
            target_type="account", target_id=from_id,
            metadata={
                "transfer_group": movement.transfer_group,
                "counterpart_account_id": to_id,
                "amount_minor": movement.amount.minor,
                "entry_ids": movement.entry_ids,
            }
        )

    @staticmethod
    def _require_positive(amount: Money) -> None:
        if not amount.is_positive:
            raise ValidationError("Amount must be greater than zero", details={"amount_minor": amount.minor})
