"""
Equipment & Rental API Endpoints.

Registry, maintenance, and the rental state machine:
assign -> (pause <-> resume)* -> return.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from siteledger.app.core.clock import Clock
from siteledger.app.core.dependencies import get_actor_id, get_clock
from siteledger.app.core.redis_client import get_redis
from siteledger.app.db.session import get_db
from siteledger.app.domain.money import Money
from siteledger.app.domain.rental.billing import RentalCharge
from siteledger.app.domain.rental.service import RentalService
from siteledger.app.models.enums import EquipmentStatus
from siteledger.app.schemas.money import MoneyResponse
from siteledger.app.schemas.rental import (
    EquipmentCreate, EquipmentResponse, EquipmentListResponse,
    AssignRequest, AssignmentResponse, PauseResponse,
    ChargeResponse, ReturnResponse, RentalStatusResponse, WorkingPeriodResponse
)

router = APIRouter(prefix="/equipment", tags=["Equipment & Rentals"])


def get_rental_service(
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
    clock: Clock = Depends(get_clock)
) -> RentalService:
    return RentalService(db, redis, clock)


def charge_response(charge: RentalCharge) -> ChargeResponse:
    return ChargeResponse(
        total_charge=MoneyResponse.of(charge.total_charge),
        billable_seconds=charge.billable_seconds,
        units=charge.units,
        rate=MoneyResponse.of(charge.rate),
        rate_unit=charge.rate_unit,
        warning=charge.warning,
    )


@router.post("", response_model=EquipmentResponse, status_code=status.HTTP_201_CREATED)
async def register_equipment(
    data: EquipmentCreate,
    actor_id: Optional[int] = Depends(get_actor_id),
    service: RentalService = Depends(get_rental_service)
):
    equipment = await service.register_equipment(
        name=data.name,
        category=data.category,
        ownership=data.ownership,
        vendor_account_id=data.vendor_account_id,
        default_rate=Money.from_major(data.default_rate) if data.default_rate is not None else None,
        default_rate_unit=data.default_rate_unit,
        quantity=data.quantity,
        model=data.model,
        plate_number=data.plate_number,
        actor_id=actor_id,
    )
    return EquipmentResponse.model_validate(equipment)


@router.get("", response_model=EquipmentListResponse)
async def list_equipment(
    status_filter: Optional[EquipmentStatus] = Query(None, alias="status"),
    service: RentalService = Depends(get_rental_service)
):
    items = await service.list_equipment(status=status_filter)
    return EquipmentListResponse(
        equipment=[EquipmentResponse.model_validate(e) for e in items],
        total=len(items)
    )


@router.get("/{equipment_id}", response_model=EquipmentResponse)
async def get_equipment(equipment_id: int, service: RentalService = Depends(get_rental_service)):
    return EquipmentResponse.model_validate(await service.get_equipment(equipment_id))


@router.post("/{equipment_id}/maintenance", response_model=EquipmentResponse)
async def start_maintenance(
    equipment_id: int,
    actor_id: Optional[int] = Depends(get_actor_id),
    service: RentalService = Depends(get_rental_service)
):
    return EquipmentResponse.model_validate(await service.set_maintenance(equipment_id, actor_id=actor_id))


@router.delete("/{equipment_id}/maintenance", response_model=EquipmentResponse)
async def end_maintenance(
    equipment_id: int,
    actor_id: Optional[int] = Depends(get_actor_id),
    service: RentalService = Depends(get_rental_service)
):
    return EquipmentResponse.model_validate(await service.clear_maintenance(equipment_id, actor_id=actor_id))


@router.post("/{equipment_id}/assign", response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
async def assign_equipment(
    equipment_id: int,
    data: AssignRequest,
    actor_id: Optional[int] = Depends(get_actor_id),
    service: RentalService = Depends(get_rental_service)
):
    """
    Assign equipment to a project or contractor.

    Returns 409 if the equipment is already assigned or in maintenance.
    """
    assignment = await service.assign(
        equipment_id,
        assignee_type=data.assignee_type,
        assignee_account_id=data.assignee_account_id,
        rate=Money.from_major(data.rate) if data.rate is not None else None,
        rate_unit=data.rate_unit,
        actor_id=actor_id,
    )
    return AssignmentResponse.model_validate(assignment)


@router.post("/{equipment_id}/pause", response_model=PauseResponse)
async def pause_rent(
    equipment_id: int,
    actor_id: Optional[int] = Depends(get_actor_id),
    service: RentalService = Depends(get_rental_service)
):
    return PauseResponse.model_validate(await service.pause(equipment_id, actor_id=actor_id))


@router.post("/{equipment_id}/resume", response_model=PauseResponse)
async def resume_rent(
    equipment_id: int,
    actor_id: Optional[int] = Depends(get_actor_id),
    service: RentalService = Depends(get_rental_service)
):
    return PauseResponse.model_validate(await service.resume(equipment_id, actor_id=actor_id))


@router.post("/{equipment_id}/return", response_model=ReturnResponse)
async def return_equipment(
    equipment_id: int,
    actor_id: Optional[int] = Depends(get_actor_id),
    service: RentalService = Depends(get_rental_service)
):
    """Close the open assignment and post its rent to the assignee's ledger."""
    result = await service.return_equipment(equipment_id, actor_id=actor_id)
    return ReturnResponse(
        assignment_id=result.assignment_id,
        equipment_id=result.equipment_id,
        assignee_account_id=result.assignee_account_id,
        started_at=result.started_at,
        ended_at=result.ended_at,
        charge=charge_response(result.charge),
        ledger_entry_id=result.ledger_entry_id,
    )


@router.get("/{equipment_id}/rental-status", response_model=RentalStatusResponse)
async def rental_status(equipment_id: int, service: RentalService = Depends(get_rental_service)):
    """What the open assignment has accrued so far, with its working periods."""
    view = await service.rental_status(equipment_id)
    return RentalStatusResponse(
        assignment_id=view.assignment_id,
        equipment_id=view.equipment_id,
        assignee_type=view.assignee_type,
        assignee_account_id=view.assignee_account_id,
        started_at=view.started_at,
        as_of=view.as_of,
        paused=view.paused,
        elapsed_seconds=view.elapsed_seconds,
        paused_seconds=view.paused_seconds,
        billable_seconds=view.billable_seconds,
        accrued=charge_response(view.accrued),
        periods=[
            WorkingPeriodResponse(start=p.start, end=p.end, seconds=p.seconds, state=p.state)
            for p in view.periods
        ],
    )


@router.get("/{equipment_id}/assignments", response_model=list[AssignmentResponse])
async def assignment_history(equipment_id: int, service: RentalService = Depends(get_rental_service)):
    assignments = await service.assignment_history(equipment_id)
    return [AssignmentResponse.model_validate(a) for a in assignments]
