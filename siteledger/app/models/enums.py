"""
Ledger and rental enumerations.
"""

import enum


class AccountKind(str, enum.Enum):
    """
    Account kind (discriminator of the Account tagged variant).

    Asset kinds hold cash: BANK_ACCOUNT, WALLET.
    Party kinds are counterparties the organization pays or bills:
    LABOURER, CONTRACTOR, VENDOR, CREDITOR, PROJECT (project expense account).
    """
    LABOURER = "labourer"
    CONTRACTOR = "contractor"
    VENDOR = "vendor"
    CREDITOR = "creditor"
    BANK_ACCOUNT = "bank_account"
    WALLET = "wallet"
    PROJECT = "project"


class EntryDirection(str, enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"

    @property
    def opposite(self) -> "EntryDirection":
        if self is EntryDirection.CREDIT:
            return EntryDirection.DEBIT
        return EntryDirection.CREDIT


class EntryCategory(str, enum.Enum):
    WAGE = "wage"
    ADVANCE = "advance"
    DEDUCTION = "deduction"
    WALLET_ALLOCATION = "wallet_allocation"
    BANK_TRANSFER = "bank_transfer"
    DEPOSIT = "deposit"
    RENTAL_EXPENSE = "rental_expense"
    BORROWING = "borrowing"
    REPAYMENT = "repayment"
    OTHER = "other"


class PaymentKind(str, enum.Enum):
    """Payment types accepted by the payment recorder; each maps to its EntryCategory."""
    WAGE = "wage"
    ADVANCE = "advance"
    DEDUCTION = "deduction"

    @property
    def category(self) -> EntryCategory:
        return EntryCategory(self.value)


class PaymentMode(str, enum.Enum):
    CASH = "cash"
    BANK = "bank"
    UPI = "upi"
    CHEQUE = "cheque"


class EquipmentCategory(str, enum.Enum):
    HEAVY_MACHINE = "heavy_machine"
    LAB_EQUIPMENT = "lab_equipment"
    CONSUMABLE = "consumable"
    TOOL_EQUIPMENT = "tool_equipment"


class OwnershipType(str, enum.Enum):
    OWNED = "owned"
    RENTED = "rented"  # Rented from a vendor


class EquipmentStatus(str, enum.Enum):
    AVAILABLE = "available"
    ASSIGNED = "assigned"
    MAINTENANCE = "maintenance"


class RateUnit(str, enum.Enum):
    PER_DAY = "per_day"
    PER_HOUR = "per_hour"

    @property
    def seconds(self) -> int:
        if self is RateUnit.PER_DAY:
            return 86400
        return 3600


class AssigneeType(str, enum.Enum):
    """Who a rental assignment bills: a project's expense account or a contractor."""
    PROJECT = "project"
    CONTRACTOR = "contractor"

    @property
    def account_kind(self) -> AccountKind:
        return AccountKind(self.value)
