"""
Fund movement tests: allocation, transfers, deposits, borrowing and repayment.
"""

import pytest

from siteledger.app.core.exceptions import (
    OverLimitError, SameAccountError, ValidationError, NotFoundError
)
from siteledger.app.domain.ledger.projector import signed_amount
from siteledger.app.domain.ledger.store import LedgerStore
from siteledger.app.domain.money import Money
from siteledger.app.models.enums import AccountKind, EntryCategory, EntryDirection, PaymentMode


@pytest.fixture
async def funded_bank(fund_service, open_account):
    """Bank account holding ₹10,000."""
    bank_id = await open_account(AccountKind.BANK_ACCOUNT, "Bank A")
    await fund_service.deposit(bank_id, Money.from_major(10000))
    return bank_id


# TEST 1: Transfers
@pytest.mark.asyncio
async def test_transfer_moves_money_between_banks(fund_service, projector, open_account, funded_bank):
    bank_b = await open_account(AccountKind.BANK_ACCOUNT, "Bank B")

    movement = await fund_service.transfer(funded_bank, bank_b, Money.from_major(4000))

    assert await projector.balance(funded_bank) == Money.from_major(6000)
    assert await projector.balance(bank_b) == Money.from_major(4000)
    assert movement.debit_entry.account_id == funded_bank
    assert movement.credit_entry.account_id == bank_b
    assert movement.debit_entry.transfer_group == movement.credit_entry.transfer_group


@pytest.mark.asyncio
async def test_transfer_to_same_account_is_rejected(db_session, fund_service, projector, funded_bank):
    with pytest.raises(SameAccountError) as exc:
        await fund_service.transfer(funded_bank, funded_bank, Money.from_major(1000))

    assert exc.value.error_code == "ERR_SAME_ACCOUNT"
    assert isinstance(exc.value, ValidationError)
    assert await projector.balance(funded_bank) == Money.from_major(10000)
    assert len(await LedgerStore(db_session).entries_for(funded_bank).to_list()) == 1


@pytest.mark.asyncio
async def test_transfer_requires_bank_accounts(fund_service, open_account, funded_bank):
    wallet_id = await open_account(AccountKind.WALLET)
    with pytest.raises(ValidationError):
        await fund_service.transfer(funded_bank, wallet_id, Money(100))
    with pytest.raises(NotFoundError):
        await fund_service.transfer(funded_bank, 777, Money(100))


@pytest.mark.asyncio
async def test_non_positive_amounts_rejected(fund_service, open_account, funded_bank):
    bank_b = await open_account(AccountKind.BANK_ACCOUNT, "Bank B")
    with pytest.raises(ValidationError):
        await fund_service.transfer(funded_bank, bank_b, Money.zero())
    with pytest.raises(ValidationError):
        await fund_service.deposit(bank_b, Money(-5))


# TEST 2: Allocation and deposits
@pytest.mark.asyncio
async def test_allocation_funds_a_wallet(fund_service, projector, open_account, funded_bank):
    wallet_id = await open_account(AccountKind.WALLET, "Site wallet")

    movement = await fund_service.allocate(funded_bank, wallet_id, Money.from_major(2500), actor_id=5)

    assert await projector.balance(wallet_id) == Money.from_major(2500)
    assert await projector.balance(funded_bank) == Money.from_major(7500)
    assert {leg.category for leg in movement.legs} == {EntryCategory.WALLET_ALLOCATION}
    assert all(leg.recorded_by == 5 for leg in movement.legs)


@pytest.mark.asyncio
async def test_allocation_direction_is_checked(fund_service, open_account, funded_bank):
    wallet_id = await open_account(AccountKind.WALLET)
    with pytest.raises(ValidationError):
        await fund_service.allocate(wallet_id, funded_bank, Money(100))


@pytest.mark.asyncio
async def test_deposit_is_a_single_credit(db_session, fund_service, open_account):
    bank_id = await open_account(AccountKind.BANK_ACCOUNT)

    entry = await fund_service.deposit(bank_id, Money.from_major(300), source_mode=PaymentMode.CHEQUE)

    assert entry.direction == EntryDirection.CREDIT
    assert entry.category == EntryCategory.DEPOSIT
    assert entry.payment_mode == PaymentMode.CHEQUE
    assert entry.transfer_group is None


@pytest.mark.asyncio
async def test_transfer_legs_net_to_zero(fund_service, open_account, funded_bank):
    bank_b = await open_account(AccountKind.BANK_ACCOUNT, "Bank B")
    movement = await fund_service.transfer(funded_bank, bank_b, Money.from_major(1234))

    total = sum(signed_amount(AccountKind.BANK_ACCOUNT, leg) for leg in movement.legs)
    assert total == Money.zero()


# TEST 3: Borrowing and repayment
@pytest.mark.asyncio
async def test_borrow_then_repay(fund_service, projector, open_account, funded_bank):
    creditor_id = await open_account(AccountKind.CREDITOR, "Mr. Gupta")

    await fund_service.borrow(creditor_id, funded_bank, Money.from_major(5000))
    assert await projector.balance(funded_bank) == Money.from_major(15000)
    assert await projector.balance(creditor_id) == Money.from_major(-5000)

    await fund_service.repay(creditor_id, funded_bank, Money.from_major(2000))
    assert await projector.balance(funded_bank) == Money.from_major(13000)
    assert await projector.balance(creditor_id) == Money.from_major(-3000)
    assert (await projector.pending(creditor_id)).pending == Money.from_major(3000)


@pytest.mark.asyncio
async def test_repay_more_than_owed_is_rejected(fund_service, projector, open_account, funded_bank):
    creditor_id = await open_account(AccountKind.CREDITOR)
    await fund_service.borrow(creditor_id, funded_bank, Money.from_major(1000))

    with pytest.raises(OverLimitError):
        await fund_service.repay(creditor_id, funded_bank, Money.from_major(1001))

    assert await projector.balance(funded_bank) == Money.from_major(11000)


@pytest.mark.asyncio
async def test_repay_takes_the_creditor_lock(fund_service, mock_redis, open_account, funded_bank):
    creditor_id = await open_account(AccountKind.CREDITOR)
    await fund_service.borrow(creditor_id, funded_bank, Money.from_major(100))
    await fund_service.repay(creditor_id, funded_bank, Money.from_major(100))

    assert mock_redis.acquired == [f"siteledger:lock:account:{creditor_id}"]


@pytest.mark.asyncio
async def test_paired_movements_without_a_check_take_no_lock(fund_service, mock_redis, open_account, funded_bank):
    wallet_id = await open_account(AccountKind.WALLET)
    bank_b = await open_account(AccountKind.BANK_ACCOUNT, "Bank B")

    await fund_service.allocate(funded_bank, wallet_id, Money.from_major(100))
    await fund_service.transfer(funded_bank, bank_b, Money.from_major(100))

    assert mock_redis.acquired == []
