from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_reference_date, get_session
from ..domain.errors import ConfigurationError, NotFoundError, ValidationError
from ..infrastructure.repositories import (
    SqlAlchemySlotRepository,
    SqlAlchemySubscriptionRepository,
    SqlAlchemyTrialBookingRepository,
)
from ..schemas import CapacityCheckRead, SlotCapacityUpdate, SlotOccupancyRead, SlotRead
from ..usecases import slots as slot_usecase
from ..utils.audit_log import emit_audit_log

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("", response_model=List[SlotRead])
async def list_active_slots(session: AsyncSession = Depends(get_session)) -> list[SlotRead]:
    slot_repo = SqlAlchemySlotRepository(session)
    slots = await slot_usecase.get_active_slots(slot_repo)
    return [SlotRead.from_db(slot=slot) for slot in slots]


@router.get("/occupancy", response_model=List[SlotOccupancyRead])
async def list_occupancy(
    reference_date: date = Depends(get_reference_date),
    session: AsyncSession = Depends(get_session),
) -> list[SlotOccupancyRead]:
    snapshots = await slot_usecase.list_occupancy(
        SqlAlchemySlotRepository(session),
        SqlAlchemySubscriptionRepository(session),
        SqlAlchemyTrialBookingRepository(session),
        reference_date=reference_date,
    )
    return [SlotOccupancyRead.from_snapshot(snapshot) for snapshot in snapshots]


@router.get("/{slot_id}", response_model=SlotRead)
async def get_slot(slot_id: str, session: AsyncSession = Depends(get_session)) -> SlotRead:
    slot_repo = SqlAlchemySlotRepository(session)
    try:
        slot = await slot_usecase.get_slot(slot_repo, slot_id=slot_id)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="slot not found")
    return SlotRead.from_db(slot=slot)


@router.patch("/{slot_id}/capacity", response_model=SlotRead)
async def update_capacity(
    slot_id: str,
    payload: SlotCapacityUpdate,
    session: AsyncSession = Depends(get_session),
) -> SlotRead:
    slot_repo = SqlAlchemySlotRepository(session)
    async with session.begin():
        try:
            slot, previous_capacity, previous_exception = await slot_usecase.update_capacity(
                slot_repo,
                slot_id=slot_id,
                regular_capacity=payload.capacity,
                exception_capacity=payload.exception_capacity,
            )
        except NotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="slot not found")
        except ValidationError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

        try:
            emit_audit_log(
                action="slot.capacity_updated",
                entity="slot",
                entity_id=slot.id,
                slot_id=slot.id,
                extra={
                    "capacity_from": previous_capacity,
                    "capacity_to": slot.capacity,
                    "exception_capacity_from": previous_exception,
                    "exception_capacity_to": slot.exception_capacity,
                },
            )
        except RuntimeError:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")

    return SlotRead.from_db(slot=slot)


@router.get("/{slot_id}/occupancy", response_model=SlotOccupancyRead)
async def get_slot_occupancy(
    slot_id: str,
    reference_date: date = Depends(get_reference_date),
    session: AsyncSession = Depends(get_session),
) -> SlotOccupancyRead:
    try:
        snapshot = await slot_usecase.get_slot_occupancy(
            SqlAlchemySlotRepository(session),
            SqlAlchemySubscriptionRepository(session),
            SqlAlchemyTrialBookingRepository(session),
            slot_id=slot_id,
            reference_date=reference_date,
        )
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="slot not found")
    return SlotOccupancyRead.from_snapshot(snapshot)


@router.get("/{slot_id}/capacity-check", response_model=CapacityCheckRead)
async def check_slot_capacity(
    slot_id: str,
    start_date: date = Query(..., description="Proposed subscription start (YYYY-MM-DD)"),
    end_date: date = Query(..., description="Proposed subscription end (YYYY-MM-DD)"),
    session: AsyncSession = Depends(get_session),
) -> CapacityCheckRead:
    try:
        check = await slot_usecase.check_slot_capacity(
            SqlAlchemySlotRepository(session),
            SqlAlchemySubscriptionRepository(session),
            SqlAlchemyTrialBookingRepository(session),
            slot_id=slot_id,
            start_date=start_date,
            end_date=end_date,
        )
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="slot not found")
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    except ConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return CapacityCheckRead.from_check(check)
