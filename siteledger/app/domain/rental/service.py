"""
Rental Service (Domain Logic).

Equipment registry and the rental assignment state machine:

    AVAILABLE --assign--> ASSIGNED (running) <--pause/resume--> ASSIGNED (paused)
    ASSIGNED --return--> AVAILABLE   (charge posted to the assignee's ledger)
    AVAILABLE <--maintenance on/off--> MAINTENANCE

Every transition of one equipment unit runs under that unit's Redis lock and
inside a single unit of work.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from siteledger.app.core.clock import Clock, system_clock
from siteledger.app.core.exceptions import (
    ValidationError, ConflictError, InvalidStateError, NotFoundError
)
from siteledger.app.core.locks import EQUIPMENT_LOCK, resource_lock
from siteledger.app.db.session import atomic
from siteledger.app.domain.ledger.store import LedgerStore, NewLedgerEntry
from siteledger.app.domain.money import Money
from siteledger.app.domain.rental.billing import RentalCharge, compute_charge
from siteledger.app.domain.rental.timeline import (
    WorkingPeriod, billable_duration, paused_duration, to_seconds, working_periods
)
from siteledger.app.domain.accounts.registry import get_account_of_kind
from siteledger.app.models.enums import (
    AccountKind, AssigneeType, EntryCategory, EntryDirection,
    EquipmentCategory, EquipmentStatus, OwnershipType, RateUnit
)
from siteledger.app.models.equipment import Equipment
from siteledger.app.models.rental_assignment import RentalAssignment, PauseInterval
from siteledger.app.services.audit import AuditAction, log_event

logger = logging.getLogger("siteledger.rental")


@dataclass(frozen=True)
class RentalReturn:
    assignment_id: int
    equipment_id: int
    assignee_account_id: int
    started_at: datetime
    ended_at: datetime
    charge: RentalCharge
    ledger_entry_id: Optional[int]


@dataclass(frozen=True)
class RentalStatus:
    """Live view of an open assignment."""
    assignment_id: int
    equipment_id: int
    assignee_type: AssigneeType
    assignee_account_id: int
    started_at: datetime
    as_of: datetime
    paused: bool
    elapsed_seconds: int
    paused_seconds: int
    accrued: RentalCharge
    periods: List[WorkingPeriod]

    @property
    def billable_seconds(self) -> int:
        return self.accrued.billable_seconds


class RentalService:
    """Equipment registry and rental state machine bound to one session."""

    def __init__(self, db: AsyncSession, redis, clock: Clock = system_clock):
        self.db = db
        self.redis = redis
        self.clock = clock
        self.store = LedgerStore(db)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    async def register_equipment(
        self,
        name: str,
        category: EquipmentCategory,
        ownership: OwnershipType = OwnershipType.OWNED,
        vendor_account_id: Optional[int] = None,
        default_rate: Optional[Money] = None,
        default_rate_unit: Optional[RateUnit] = None,
        quantity: int = 1,
        model: Optional[str] = None,
        plate_number: Optional[str] = None,
        actor_id: Optional[int] = None
    ) -> Equipment:
        """
        Register a piece of equipment.

        Raises:
            ValidationError: Bad quantity, negative rate, or a rented unit
                without a vendor account.
            NotFoundError: Unknown vendor account.
        """
        if not name or not name.strip():
            raise ValidationError("Equipment name is required")
        if quantity < 0 or (category != EquipmentCategory.CONSUMABLE and quantity != 1):
            raise ValidationError(
                "Only consumables carry a quantity; other equipment is registered one unit at a time",
                details={"category": category.value, "quantity": quantity}
            )
        if default_rate is not None and default_rate.is_negative:
            raise ValidationError("Rate cannot be negative")
        if (default_rate is None) != (default_rate_unit is None):
            raise ValidationError("Default rate and rate unit must be given together")

        async with atomic(self.db):
            if ownership == OwnershipType.RENTED:
                if vendor_account_id is None:
                    raise ValidationError("Rented equipment needs a vendor account")
                await get_account_of_kind(self.db, vendor_account_id, AccountKind.VENDOR)
            elif vendor_account_id is not None:
                raise ValidationError("Owned equipment has no vendor account")

            equipment = Equipment(
                name=name.strip(),
                model=model,
                plate_number=plate_number,
                category=category,
                ownership=ownership,
                vendor_account_id=vendor_account_id,
                default_rate_minor=default_rate.minor if default_rate is not None else None,
                default_rate_unit=default_rate_unit,
                quantity=quantity,
                status=EquipmentStatus.AVAILABLE,
                created_by=actor_id,
            )
            self.db.add(equipment)
            await self.db.flush()

            await log_event(
                self.db, AuditAction.EQUIPMENT_REGISTERED, actor_id=actor_id,
                target_type="equipment", target_id=equipment.id,
                metadata={"category": category.value, "ownership": ownership.value}
            )

        logger.info("Equipment registered", extra={"equipment_id": equipment.id, "category": category.value})
        return equipment

    async def get_equipment(self, equipment_id: int) -> Equipment:
        equipment = await self.db.get(Equipment, equipment_id)
        if equipment is None:
            raise NotFoundError("Equipment", equipment_id)
        return equipment

    async def list_equipment(self, status: Optional[EquipmentStatus] = None) -> List[Equipment]:
        query = select(Equipment)
        if status is not None:
            query = query.where(Equipment.status == status)
        result = await self.db.execute(query.order_by(Equipment.id))
        return list(result.scalars().all())

    async def set_maintenance(self, equipment_id: int, actor_id: Optional[int] = None) -> Equipment:
        return await self._switch_status(
            equipment_id, EquipmentStatus.AVAILABLE, EquipmentStatus.MAINTENANCE,
            AuditAction.MAINTENANCE_STARTED, actor_id
        )

    async def clear_maintenance(self, equipment_id: int, actor_id: Optional[int] = None) -> Equipment:
        return await self._switch_status(
            equipment_id, EquipmentStatus.MAINTENANCE, EquipmentStatus.AVAILABLE,
            AuditAction.MAINTENANCE_ENDED, actor_id
        )

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def assign(
        self,
        equipment_id: int,
        assignee_type: AssigneeType,
        assignee_account_id: int,
        rate: Optional[Money] = None,
        rate_unit: Optional[RateUnit] = None,
        actor_id: Optional[int] = None
    ) -> RentalAssignment:
        """
        Open an assignment. The equipment's default rate applies when none is given.

        Raises:
            NotFoundError: Unknown equipment or assignee account.
            ValidationError: Consumable, negative or missing rate, or assignee kind mismatch.
            ConflictError: Equipment not available (assigned or in maintenance).
        """
        async with resource_lock(self.redis, EQUIPMENT_LOCK, equipment_id):
            async with atomic(self.db):
                equipment = await self.get_equipment(equipment_id)
                if equipment.category == EquipmentCategory.CONSUMABLE:
                    raise ValidationError(
                        "Consumables cannot be rented out",
                        details={"equipment_id": equipment_id}
                    )
                if equipment.status != EquipmentStatus.AVAILABLE:
                    raise ConflictError(
                        f"Equipment {equipment_id} is not available (status: {equipment.status.value})",
                        details={"equipment_id": equipment_id, "status": equipment.status.value}
                    )

                await get_account_of_kind(self.db, assignee_account_id, assignee_type.account_kind)

                if rate is None:
                    if equipment.default_rate_minor is None:
                        raise ValidationError("No rate given and the equipment has no default rate")
                    rate = Money(equipment.default_rate_minor)
                    rate_unit = rate_unit or equipment.default_rate_unit
                if rate_unit is None:
                    raise ValidationError("Rate unit is required")
                if rate.is_negative:
                    raise ValidationError("Rate cannot be negative", details={"rate_minor": rate.minor})

                assignment = RentalAssignment(
                    equipment_id=equipment_id,
                    assignee_type=assignee_type,
                    assignee_account_id=assignee_account_id,
                    rate_minor=rate.minor,
                    rate_unit=rate_unit,
                    started_at=self.clock.now(),
                    assigned_by=actor_id,
                    pauses=[],
                )
                self.db.add(assignment)
                try:
                    await self.db.flush()
                except IntegrityError:
                    raise ConflictError(
                        f"Equipment {equipment_id} already has an open assignment",
                        details={"equipment_id": equipment_id}
                    )

                equipment.status = EquipmentStatus.ASSIGNED
                await log_event(
                    self.db, AuditAction.EQUIPMENT_ASSIGNED, actor_id=actor_id,
                    target_type="equipment", target_id=equipment_id,
                    metadata={
                        "assignment_id": assignment.id,
                        "assignee_type": assignee_type.value,
                        "assignee_account_id": assignee_account_id,
                        "rate_minor": rate.minor,
                        "rate_unit": rate_unit.value,
                    }
                )

        logger.info(
            "Equipment assigned",
            extra={"equipment_id": equipment_id, "assignment_id": assignment.id, "assignee_account_id": assignee_account_id}
        )
        return assignment

    async def pause(self, equipment_id: int, actor_id: Optional[int] = None) -> PauseInterval:
        """
        Stop the billing clock.

        Raises:
            InvalidStateError: No open assignment, or already paused.
        """
        async with resource_lock(self.redis, EQUIPMENT_LOCK, equipment_id):
            async with atomic(self.db):
                assignment = await self._require_open_assignment(equipment_id)
                if assignment.open_pause is not None:
                    raise InvalidStateError(
                        f"Rent for equipment {equipment_id} is already paused",
                        details={"equipment_id": equipment_id, "assignment_id": assignment.id}
                    )

                pause = PauseInterval(
                    assignment_id=assignment.id,
                    sequence=len(assignment.pauses) + 1,
                    paused_at=self._event_time(assignment),
                )
                assignment.pauses.append(pause)
                try:
                    await self.db.flush()
                except IntegrityError:
                    raise InvalidStateError(
                        f"Rent for equipment {equipment_id} is already paused",
                        details={"equipment_id": equipment_id}
                    )

                await log_event(
                    self.db, AuditAction.RENT_PAUSED, actor_id=actor_id,
                    target_type="equipment", target_id=equipment_id,
                    metadata={"assignment_id": assignment.id, "sequence": pause.sequence}
                )

        logger.info("Rent paused", extra={"equipment_id": equipment_id, "assignment_id": assignment.id})
        return pause

    async def resume(self, equipment_id: int, actor_id: Optional[int] = None) -> PauseInterval:
        """
        Restart the billing clock.

        Raises:
            InvalidStateError: No open assignment, or not paused.
        """
        async with resource_lock(self.redis, EQUIPMENT_LOCK, equipment_id):
            async with atomic(self.db):
                assignment = await self._require_open_assignment(equipment_id)
                pause = assignment.open_pause
                if pause is None:
                    raise InvalidStateError(
                        f"Rent for equipment {equipment_id} is not paused",
                        details={"equipment_id": equipment_id, "assignment_id": assignment.id}
                    )

                pause.resumed_at = self._event_time(assignment)
                await self.db.flush()

                await log_event(
                    self.db, AuditAction.RENT_RESUMED, actor_id=actor_id,
                    target_type="equipment", target_id=equipment_id,
                    metadata={"assignment_id": assignment.id, "sequence": pause.sequence}
                )

        logger.info("Rent resumed", extra={"equipment_id": equipment_id, "assignment_id": assignment.id})
        return pause

    async def return_equipment(self, equipment_id: int, actor_id: Optional[int] = None) -> RentalReturn:
        """
        Close the open assignment and bill it.

        An open pause is resumed at the return time. A positive charge is
        posted as a rental_expense debit against the assignee's account.

        Raises:
            NotFoundError: Unknown equipment.
            InvalidStateError: No open assignment (including a concurrent return
                that closed it first).
        """
        async with resource_lock(self.redis, EQUIPMENT_LOCK, equipment_id):
            async with atomic(self.db):
                equipment = await self.get_equipment(equipment_id)
                assignment = await self._require_open_assignment(equipment_id)
                ended_at = self._event_time(assignment)

                open_pause = assignment.open_pause
                if open_pause is not None:
                    open_pause.resumed_at = ended_at

                billable = billable_duration(assignment.started_at, assignment.pauses, ended_at)
                charge = compute_charge(
                    to_seconds(billable), Money(assignment.rate_minor), assignment.rate_unit
                )

                entry_id = None
                if charge.total_charge.is_positive:
                    entry = await self.store.append(NewLedgerEntry(
                        account_id=assignment.assignee_account_id,
                        direction=EntryDirection.DEBIT,
                        amount=charge.total_charge,
                        category=EntryCategory.RENTAL_EXPENSE,
                        occurred_at=ended_at,
                        description=(
                            f"Rent for {equipment.name}: {charge.units} x "
                            f"{charge.rate} {charge.rate_unit.value}"
                        )[:255],
                        counterpart_account_id=equipment.vendor_account_id,
                        source_type="rental_assignment",
                        source_id=assignment.id,
                        recorded_by=actor_id,
                    ))
                    entry_id = entry.id

                # Conditional close: a concurrent return that got here first wins.
                result = await self.db.execute(
                    update(RentalAssignment)
                    .where(RentalAssignment.id == assignment.id, RentalAssignment.ended_at.is_(None))
                    .values(
                        ended_at=ended_at,
                        billable_seconds=charge.billable_seconds,
                        billed_units=charge.units,
                        total_charge_minor=charge.total_charge.minor,
                        ledger_entry_id=entry_id,
                        returned_by=actor_id,
                    )
                )
                if result.rowcount != 1:
                    raise InvalidStateError(
                        f"Equipment {equipment_id} was already returned",
                        details={"equipment_id": equipment_id, "assignment_id": assignment.id}
                    )

                equipment.status = EquipmentStatus.AVAILABLE
                await log_event(
                    self.db, AuditAction.EQUIPMENT_RETURNED, actor_id=actor_id,
                    target_type="equipment", target_id=equipment_id,
                    metadata={
                        "assignment_id": assignment.id,
                        "billable_seconds": charge.billable_seconds,
                        "units": charge.units,
                        "total_charge_minor": charge.total_charge.minor,
                        "ledger_entry_id": entry_id,
                        "warning": charge.warning,
                    }
                )

        logger.info(
            "Equipment returned",
            extra={
                "equipment_id": equipment_id,
                "assignment_id": assignment.id,
                "total_charge_minor": charge.total_charge.minor,
                "ledger_entry_id": entry_id,
            }
        )
        return RentalReturn(
            assignment_id=assignment.id,
            equipment_id=equipment_id,
            assignee_account_id=assignment.assignee_account_id,
            started_at=assignment.started_at,
            ended_at=ended_at,
            charge=charge,
            ledger_entry_id=entry_id,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_open_assignment(self, equipment_id: int) -> Optional[RentalAssignment]:
        result = await self.db.execute(
            select(RentalAssignment)
            .where(RentalAssignment.equipment_id == equipment_id, RentalAssignment.ended_at.is_(None))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def assignment_history(self, equipment_id: int) -> List[RentalAssignment]:
        await self.get_equipment(equipment_id)
        result = await self.db.execute(
            select(RentalAssignment)
            .where(RentalAssignment.equipment_id == equipment_id)
            .order_by(RentalAssignment.started_at, RentalAssignment.id)
        )
        return list(result.scalars().all())

    async def rental_status(self, equipment_id: int) -> RentalStatus:
        """
        Preview of what the open assignment would bill if returned now.

        Raises:
            NotFoundError: Unknown equipment.
            InvalidStateError: No open assignment.
        """
        await self.get_equipment(equipment_id)
        assignment = await self._require_open_assignment(equipment_id)
        as_of = max(self.clock.now(), self._last_event(assignment))

        charge = compute_charge(
            to_seconds(billable_duration(assignment.started_at, assignment.pauses, as_of)),
            Money(assignment.rate_minor),
            assignment.rate_unit,
        )
        return RentalStatus(
            assignment_id=assignment.id,
            equipment_id=equipment_id,
            assignee_type=assignment.assignee_type,
            assignee_account_id=assignment.assignee_account_id,
            started_at=assignment.started_at,
            as_of=as_of,
            paused=assignment.open_pause is not None,
            elapsed_seconds=to_seconds(as_of - assignment.started_at),
            paused_seconds=to_seconds(paused_duration(assignment.pauses, as_of)),
            accrued=charge,
            periods=working_periods(assignment.started_at, assignment.pauses, as_of),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require_open_assignment(self, equipment_id: int) -> RentalAssignment:
        assignment = await self.get_open_assignment(equipment_id)
        if assignment is None:
            raise InvalidStateError(
                f"Equipment {equipment_id} has no open assignment",
                details={"equipment_id": equipment_id}
            )
        return assignment

    def _last_event(self, assignment: RentalAssignment) -> datetime:
        last = assignment.started_at
        for pause in assignment.pauses:
            last = max(last, pause.paused_at)
            if pause.resumed_at is not None:
                last = max(last, pause.resumed_at)
        return last

    def _event_time(self, assignment: RentalAssignment) -> datetime:
        """Clock reading, clamped so events on one assignment never go backwards."""
        now = self.clock.now()
        last = self._last_event(assignment)
        if now < last:
            logger.warning(
                "Clock behind last rental event; clamping",
                extra={
                    "assignment_id": assignment.id,
                    "clock": now.isoformat(),
                    "last_event": last.isoformat(),
                }
            )
            return last
        return now

    async def _switch_status(
        self,
        equipment_id: int,
        expected: EquipmentStatus,
        target: EquipmentStatus,
        action: str,
        actor_id: Optional[int]
    ) -> Equipment:
        async with resource_lock(self.redis, EQUIPMENT_LOCK, equipment_id):
            async with atomic(self.db):
                equipment = await self.get_equipment(equipment_id)
                if equipment.status != expected:
                    raise ConflictError(
                        f"Equipment {equipment_id} is {equipment.status.value}, expected {expected.value}",
                        details={"equipment_id": equipment_id, "status": equipment.status.value}
                    )
                equipment.status = target
                await log_event(
                    self.db, action, actor_id=actor_id,
                    target_type="equipment", target_id=equipment_id
                )

        logger.info("Equipment status changed", extra={"equipment_id": equipment_id, "status": target.value})
        return equipment
