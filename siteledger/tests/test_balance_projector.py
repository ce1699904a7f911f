"""
Balance projector tests.

The folded (recomputed) balance and the snapshot (running) balance must agree.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from siteledger.app.core.exceptions import ValidationError, NotFoundError
from siteledger.app.domain.ledger.projector import entry_sign, ASSET_KINDS, PARTY_KINDS
from siteledger.app.domain.ledger.store import LedgerStore, NewLedgerEntry
from siteledger.app.domain.money import Money
from siteledger.app.models.account import AccountBalance
from siteledger.app.models.enums import AccountKind, EntryCategory, EntryDirection

START = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


def _entry(account_id, amount_minor, direction, category=EntryCategory.OTHER, at=START):
    return NewLedgerEntry(
        account_id=account_id,
        direction=direction,
        amount=Money(amount_minor),
        category=category,
        occurred_at=at,
    )


def test_every_kind_has_one_sign_convention():
    assert ASSET_KINDS | PARTY_KINDS == set(AccountKind)
    assert not ASSET_KINDS & PARTY_KINDS
    assert entry_sign(AccountKind.BANK_ACCOUNT, EntryDirection.CREDIT) == 1
    assert entry_sign(AccountKind.CREDITOR, EntryDirection.CREDIT) == -1


@pytest.mark.asyncio
async def test_creditor_balance_is_negative_while_owed(db_session, projector, open_account):
    """Borrowed 5000, repaid 2000: the creditor's balance is -3000."""
    creditor_id = await open_account(AccountKind.CREDITOR)
    store = LedgerStore(db_session)
    await store.append(_entry(creditor_id, 500000, EntryDirection.CREDIT, EntryCategory.BORROWING))
    await store.append(_entry(creditor_id, 200000, EntryDirection.DEBIT, EntryCategory.REPAYMENT,
                              at=START + timedelta(days=1)))

    assert await projector.balance(creditor_id) == Money(-300000)
    assert await projector.recompute_balance(creditor_id) == Money(-300000)
    assert (await projector.pending(creditor_id)).pending == Money(300000)


@pytest.mark.asyncio
async def test_bank_balance_is_credits_minus_debits(db_session, projector, open_account):
    bank_id = await open_account(AccountKind.BANK_ACCOUNT)
    store = LedgerStore(db_session)
    await store.append(_entry(bank_id, 1000000, EntryDirection.CREDIT, EntryCategory.DEPOSIT))
    await store.append(_entry(bank_id, 250000, EntryDirection.DEBIT))

    assert await projector.balance(bank_id) == Money(750000)


@pytest.mark.asyncio
async def test_empty_account_has_zero_balance(projector, open_account):
    wallet_id = await open_account(AccountKind.WALLET)
    assert await projector.balance(wallet_id) == Money.zero()
    assert await projector.recompute_balance(wallet_id) == Money.zero()


@pytest.mark.asyncio
async def test_unknown_account(projector):
    with pytest.raises(NotFoundError):
        await projector.balance(999)


@pytest.mark.asyncio
async def test_running_matches_recomputed_after_mixed_entries(db_session, projector, open_account):
    labourer_id = await open_account(AccountKind.LABOURER)
    store = LedgerStore(db_session)
    for i, (amount, direction, category) in enumerate([
        (50000, EntryDirection.DEBIT, EntryCategory.WAGE),
        (20000, EntryDirection.DEBIT, EntryCategory.ADVANCE),
        (5000, EntryDirection.CREDIT, EntryCategory.OTHER),
        (1000, EntryDirection.DEBIT, EntryCategory.DEDUCTION),
    ]):
        await store.append(_entry(labourer_id, amount, direction, category, at=START + timedelta(hours=i)))

    check = await projector.verify(labourer_id)
    assert check.consistent
    assert check.running == Money(66000)


@pytest.mark.asyncio
async def test_pending_separates_advances(db_session, projector, open_account):
    labourer_id = await open_account(AccountKind.LABOURER)
    store = LedgerStore(db_session)
    await store.append(_entry(labourer_id, 100000, EntryDirection.DEBIT, EntryCategory.WAGE))
    advance = await store.append(_entry(labourer_id, 30000, EntryDirection.DEBIT, EntryCategory.ADVANCE))

    position = await projector.pending(labourer_id, earned=Money(500000))
    assert position.pending == Money(400000)
    assert position.advance_outstanding == Money(30000)
    assert position.net_payable == Money(370000)

    await store.reverse(advance.id, START + timedelta(hours=1), "recorded twice")
    position = await projector.pending(labourer_id, earned=Money(500000))
    assert position.pending == Money(400000)
    assert position.advance_outstanding == Money.zero()

    recomputed = await projector.recompute_pending(labourer_id, earned=Money(500000))
    assert recomputed == position


@pytest.mark.asyncio
async def test_pending_ignores_earnings_for_creditors(projector, open_account):
    creditor_id = await open_account(AccountKind.CREDITOR)
    position = await projector.pending(creditor_id, earned=Money(100))
    assert position.earned == Money.zero()


@pytest.mark.asyncio
async def test_pending_rejects_asset_accounts(projector, open_account):
    bank_id = await open_account(AccountKind.BANK_ACCOUNT)
    with pytest.raises(ValidationError):
        await projector.pending(bank_id)


@pytest.mark.asyncio
async def test_verify_detects_and_rebuild_repairs_drift(db_session, projector, open_account):
    bank_id = await open_account(AccountKind.BANK_ACCOUNT)
    await LedgerStore(db_session).append(_entry(bank_id, 40000, EntryDirection.CREDIT, EntryCategory.DEPOSIT))
    await db_session.commit()

    # Corrupt the snapshot behind the store's back
    await db_session.execute(
        update(AccountBalance)
        .where(AccountBalance.account_id == bank_id)
        .values(total_credits_minor=1)
        .execution_options(synchronize_session=False)
    )
    await db_session.commit()

    check = await projector.verify(bank_id)
    assert not check.consistent
    assert check.recomputed == Money(40000)
    assert check.running == Money(1)

    assert await projector.rebuild_snapshot(bank_id) == Money(40000)
    await db_session.commit()
    assert (await projector.verify(bank_id)).consistent


@pytest.mark.asyncio
async def test_rebuild_creates_missing_snapshot(db_session, projector, open_account):
    bank_id = await open_account(AccountKind.BANK_ACCOUNT)
    await LedgerStore(db_session).append(_entry(bank_id, 700, EntryDirection.CREDIT, EntryCategory.DEPOSIT))
    snapshot = await db_session.get(AccountBalance, bank_id)
    await db_session.delete(snapshot)
    await db_session.commit()

    assert await projector.running_balance(bank_id) == Money.zero()
    await projector.rebuild_snapshot(bank_id)
    await db_session.commit()
    assert await projector.running_balance(bank_id) == Money(700)
