"""
Account database models.

One table, one row per account, discriminated by ``kind``. Each kind is its
own mapped subclass so callers match on type instead of probing for fields.
"""

from sqlalchemy import Column, Integer, BigInteger, String, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from siteledger.app.db.session import Base
from siteledger.app.models.enums import AccountKind


class Account(Base):
    """
    Base account.

    The balance is never stored here; it is projected from ledger entries
    (see ``AccountBalance`` for the incrementally maintained snapshot).
    """
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    kind = Column(Enum(AccountKind), nullable=False, index=True)
    name = Column(String(255), nullable=False)

    # Contact (labourer, contractor, vendor, creditor)
    phone = Column(String(20), nullable=True)
    address = Column(String(500), nullable=True)

    # Labourer
    daily_wage_minor = Column(BigInteger, nullable=True)
    designation = Column(String(100), nullable=True)

    # Bank account
    bank_name = Column(String(100), nullable=True)
    holder_name = Column(String(255), nullable=True)
    account_number = Column(String(50), nullable=True)
    ifsc = Column(String(20), nullable=True)
    branch = Column(String(100), nullable=True)

    # Wallet (site manager's spendable balance)
    holder_user_id = Column(Integer, nullable=True, index=True)

    # Project expense account
    project_code = Column(String(50), nullable=True, unique=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __mapper_args__ = {
        "polymorphic_on": kind,
    }

    def __repr__(self):
        return f"<Account(id={self.id}, kind='{self.kind.value}', name='{self.name}')>"


class Labourer(Account):
    __mapper_args__ = {"polymorphic_identity": AccountKind.LABOURER}


class Contractor(Account):
    __mapper_args__ = {"polymorphic_identity": AccountKind.CONTRACTOR}


class Vendor(Account):
    __mapper_args__ = {"polymorphic_identity": AccountKind.VENDOR}


class Creditor(Account):
    __mapper_args__ = {"polymorphic_identity": AccountKind.CREDITOR}


class BankAccount(Account):
    __mapper_args__ = {"polymorphic_identity": AccountKind.BANK_ACCOUNT}


class Wallet(Account):
    __mapper_args__ = {"polymorphic_identity": AccountKind.WALLET}


class ProjectAccount(Account):
    __mapper_args__ = {"polymorphic_identity": AccountKind.PROJECT}


ACCOUNT_CLASSES = {
    AccountKind.LABOURER: Labourer,
    AccountKind.CONTRACTOR: Contractor,
    AccountKind.VENDOR: Vendor,
    AccountKind.CREDITOR: Creditor,
    AccountKind.BANK_ACCOUNT: BankAccount,
    AccountKind.WALLET: Wallet,
    AccountKind.PROJECT: ProjectAccount,
}


class AccountBalance(Base):
    """
    Incrementally maintained balance snapshot.

    Updated with additive SQL in the same transaction as every ledger append.
    It is a projection cache; the ledger entries remain the system of record.
    """
    __tablename__ = "account_balances"

    account_id = Column(Integer, ForeignKey('accounts.id'), primary_key=True)
    total_credits_minor = Column(BigInteger, default=0, nullable=False)
    total_debits_minor = Column(BigInteger, default=0, nullable=False)
    net_advance_minor = Column(BigInteger, default=0, nullable=False)
    entry_count = Column(Integer, default=0, nullable=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return (
            f"<AccountBalance(account_id={self.account_id}, credits={self.total_credits_minor}, "
            f"debits={self.total_debits_minor})>"
        )
