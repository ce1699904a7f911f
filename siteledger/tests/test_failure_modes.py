"""
Failure Injection Tests.

A failure anywhere inside an operation leaves no partial state behind.
"""

import pytest

from siteledger.app.core.exceptions import InvalidStateError
from siteledger.app.core.reliability import CircuitBreaker, CircuitOpenError
from siteledger.app.domain.ledger.store import LedgerStore
from siteledger.app.domain.money import Money
from siteledger.app.models.enums import (
    AccountKind, AssigneeType, EquipmentCategory, EquipmentStatus, PaymentKind, RateUnit
)


class FakeTime:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.mark.asyncio
async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker("test", failure_threshold=2, reset_timeout=1)

    async def failing_func():
        raise ValueError("Boom")

    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(failing_func)

    with pytest.raises(CircuitOpenError):
        await cb.call(failing_func)


@pytest.mark.asyncio
async def test_circuit_breaker_half_open_trial():
    ticks = FakeTime()
    cb = CircuitBreaker("test", failure_threshold=1, reset_timeout=10, clock=ticks)

    async def failing_func():
        raise ValueError("Boom")

    async def ok_func():
        return "ok"

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"

    ticks.now = 10.0
    # Failed trial reopens straight away
    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"

    ticks.now = 20.0
    assert await cb.call(ok_func) == "ok"
    assert cb.state == "CLOSED"
    assert cb.failures == 0


@pytest.mark.asyncio
async def test_transfer_rolls_back_when_audit_fails(db_session, fund_service, projector, open_account, mocker):
    bank_a = await open_account(AccountKind.BANK_ACCOUNT, "A")
    bank_b = await open_account(AccountKind.BANK_ACCOUNT, "B")
    await fund_service.deposit(bank_a, Money.from_major(1000))

    mocker.patch(
        "siteledger.app.domain.funds.service.log_event",
        side_effect=RuntimeError("audit store down")
    )
    with pytest.raises(RuntimeError):
        await fund_service.transfer(bank_a, bank_b, Money.from_major(400))

    assert await projector.balance(bank_a) == Money.from_major(1000)
    assert await projector.balance(bank_b) == Money.zero()
    assert await LedgerStore(db_session).entries_for(bank_b).to_list() == []
    assert (await projector.verify(bank_a)).consistent


@pytest.mark.asyncio
async def test_return_rolls_back_when_audit_fails(db_session, rental_service, clock, open_account, mocker):
    project_id = await open_account(AccountKind.PROJECT, project_code="FAIL-1")
    equipment = await rental_service.register_equipment(
        "Generator", EquipmentCategory.HEAVY_MACHINE,
        default_rate=Money.from_major(200), default_rate_unit=RateUnit.PER_HOUR,
    )
    equipment_id = equipment.id
    await rental_service.assign(equipment_id, AssigneeType.PROJECT, project_id)
    clock.advance(hours=3)

    mocker.patch(
        "siteledger.app.domain.rental.service.log_event",
        side_effect=RuntimeError("audit store down")
    )
    with pytest.raises(RuntimeError):
        await rental_service.return_equipment(equipment_id)
    mocker.stopall()

    assert (await rental_service.get_equipment(equipment_id)).status == EquipmentStatus.ASSIGNED
    assert await rental_service.get_open_assignment(equipment_id) is not None
    assert await LedgerStore(db_session).entries_for(project_id).to_list() == []

    # The unit can still be returned once the fault clears
    result = await rental_service.return_equipment(equipment_id)
    assert result.charge.total_charge == Money.from_major(600)


@pytest.mark.asyncio
async def test_payment_rolls_back_when_append_fails(db_session, payment_recorder, projector, open_account, mocker):
    labourer_id = await open_account(AccountKind.LABOURER)

    mocker.patch.object(
        payment_recorder.store, "_apply_to_snapshot",
        side_effect=RuntimeError("snapshot write failed")
    )
    with pytest.raises(RuntimeError):
        await payment_recorder.record_payment(labourer_id, PaymentKind.ADVANCE, Money(100))

    assert await LedgerStore(db_session).entries_for(labourer_id).to_list() == []
    assert (await projector.pending(labourer_id)).advance_outstanding == Money.zero()


@pytest.mark.asyncio
async def test_failed_transition_leaves_state_unchanged(rental_service, open_account):
    equipment = await rental_service.register_equipment("Vibrator", EquipmentCategory.TOOL_EQUIPMENT)
    equipment_id = equipment.id

    with pytest.raises(InvalidStateError):
        await rental_service.resume(equipment_id)

    assert (await rental_service.get_equipment(equipment_id)).status == EquipmentStatus.AVAILABLE
    assert await rental_service.assignment_history(equipment_id) == []
