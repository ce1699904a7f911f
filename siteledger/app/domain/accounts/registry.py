"""
Account Registry.

Opens accounts of each kind and resolves ids to typed accounts. Every new
account starts with a zero balance snapshot.
"""

import logging
from typing import Optional, List, Dict, Any, Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from siteledger.app.core.exceptions import ValidationError, NotFoundError, ConflictError
from siteledger.app.db.session import atomic
from siteledger.app.models.account import Account, AccountBalance, ACCOUNT_CLASSES
from siteledger.app.models.enums import AccountKind
from siteledger.app.services.audit import AuditAction, log_event

logger = logging.getLogger("siteledger.accounts")

CONTACT_FIELDS = ("phone", "address")

# Attributes each kind may carry besides its name
KIND_FIELDS: Dict[AccountKind, tuple] = {
    AccountKind.LABOURER: CONTACT_FIELDS + ("daily_wage", "designation"),
    AccountKind.CONTRACTOR: CONTACT_FIELDS,
    AccountKind.VENDOR: CONTACT_FIELDS,
    AccountKind.CREDITOR: CONTACT_FIELDS,
    AccountKind.BANK_ACCOUNT: ("bank_name", "holder_name", "account_number", "ifsc", "branch"),
    AccountKind.WALLET: ("holder_user_id",),
    AccountKind.PROJECT: ("project_code",),
}


async def get_account(db: AsyncSession, account_id: int) -> Account:
    account = await db.get(Account, account_id)
    if account is None:
        raise NotFoundError("Account", account_id)
    return account


async def get_account_of_kind(db: AsyncSession, account_id: int, kinds: Iterable[AccountKind]) -> Account:
    """
    Resolve ``account_id`` and check its kind.

    Raises:
        NotFoundError: Unknown account.
        ValidationError: The account is not one of ``kinds``.
    """
    if isinstance(kinds, AccountKind):
        kinds = (kinds,)
    kinds = tuple(kinds)
    account = await get_account(db, account_id)
    if account.kind not in kinds:
        expected = " or ".join(k.value for k in kinds)
        raise ValidationError(
            f"Account {account_id} is a {account.kind.value}, expected {expected}",
            details={"account_id": account_id, "expected": [k.value for k in kinds], "actual": account.kind.value}
        )
    return account


class AccountRegistry:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def open_account(
        self,
        kind: AccountKind,
        name: str,
        actor_id: Optional[int] = None,
        **attributes: Any
    ) -> Account:
        """
        Open an account of ``kind``.

        Args:
            kind: Account kind
            name: Display name
            actor_id: Who opened it
            **attributes: Kind-specific fields (see KIND_FIELDS); ``daily_wage`` is Money

        Raises:
            ValidationError: Blank name, unknown attribute for the kind, negative wage.
            ConflictError: Duplicate project code.
        """
        if not name or not name.strip():
            raise ValidationError("Account name is required")

        allowed = KIND_FIELDS[kind]
        unknown = sorted(k for k, v in attributes.items() if k not in allowed and v is not None)
        if unknown:
            raise ValidationError(
                f"Fields not valid for a {kind.value} account: {', '.join(unknown)}",
                details={"kind": kind.value, "fields": unknown}
            )

        values = {k: v for k, v in attributes.items() if v is not None}
        daily_wage = values.pop("daily_wage", None)
        if daily_wage is not None:
            if daily_wage.is_negative:
                raise ValidationError("Daily wage cannot be negative")
            values["daily_wage_minor"] = daily_wage.minor
        if kind == AccountKind.PROJECT and not values.get("project_code"):
            raise ValidationError("Project accounts need a project code")

        async with atomic(self.db):
            account = ACCOUNT_CLASSES[kind](name=name.strip(), created_by=actor_id, **values)
            self.db.add(account)
            try:
                await self.db.flush()
            except IntegrityError:
                raise ConflictError(
                    "An account with these details already exists",
                    details={"kind": kind.value}
                )

            self.db.add(AccountBalance(
                account_id=account.id,
                total_credits_minor=0,
                total_debits_minor=0,
                net_advance_minor=0,
                entry_count=0,
            ))
            await log_event(
                self.db, AuditAction.ACCOUNT_OPENED, actor_id=actor_id,
                target_type="account", target_id=account.id,
                metadata={"kind": kind.value}
            )

        logger.info("Account opened", extra={"account_id": account.id, "kind": kind.value})
        return account

    async def get(self, account_id: int) -> Account:
        return await get_account(self.db, account_id)

    async def list_accounts(self, kind: Optional[AccountKind] = None, active_only: bool = True) -> List[Account]:
        query = select(Account)
        if kind is not None:
            query = query.where(Account.kind == kind)
        if active_only:
            query = query.where(Account.is_active.is_(True))
        result = await self.db.execute(query.order_by(Account.id))
        return list(result.scalars().all())
