from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_reference_date, get_session
from ..domain.errors import NotFoundError, PlanReferenceError, ValidationError
from ..infrastructure.repositories import (
    SqlAlchemyAllocationRepository,
    SqlAlchemySessionExecutionRepository,
    SqlAlchemySessionPlanRepository,
    SqlAlchemySlotRepository,
)
from ..models import AllocationStatus
from ..schemas import AllocationAllSlotsCreate, AllocationCreate, AllocationRead
from ..usecases import allocations as allocation_usecase
from ..usecases.allocations import AllocationChange
from ..utils.audit_log import emit_audit_log

router = APIRouter(prefix="/session-plan-allocations", tags=["allocations"])


@router.post("", response_model=AllocationRead, status_code=status.HTTP_201_CREATED)
async def create_allocation(
    payload: AllocationCreate,
    session: AsyncSession = Depends(get_session),
) -> AllocationRead:
    async with session.begin():
        try:
            change = await allocation_usecase.allocate(
                SqlAlchemySlotRepository(session),
                SqlAlchemySessionPlanRepository(session),
                SqlAlchemySessionExecutionRepository(session),
                SqlAlchemyAllocationRepository(session),
                session_plan_id=payload.session_plan_id,
                slot_id=payload.slot_id,
                on=payload.date,
                allocated_by=payload.allocated_by,
            )
        except NotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="slot not found")
        except PlanReferenceError:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="session plan not found")
        except ValidationError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
        except IntegrityError:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT, detail="another allocation was scheduled concurrently"
            )
        _audit_change(change, actor=payload.allocated_by)

    return AllocationRead.from_db(allocation=change.allocation)


@router.post("/all-slots", response_model=List[AllocationRead], status_code=status.HTTP_201_CREATED)
async def create_allocations_for_all_slots(
    payload: AllocationAllSlotsCreate,
    session: AsyncSession = Depends(get_session),
) -> list[AllocationRead]:
    async with session.begin():
        try:
            changes = await allocation_usecase.allocate_to_all_slots(
                SqlAlchemySlotRepository(session),
                SqlAlchemySessionPlanRepository(session),
                SqlAlchemySessionExecutionRepository(session),
                SqlAlchemyAllocationRepository(session),
                session_plan_id=payload.session_plan_id,
                on=payload.date,
                allocated_by=payload.allocated_by,
            )
        except PlanReferenceError:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="session plan not found")
        except IntegrityError:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT, detail="another allocation was scheduled concurrently"
            )
        for change in changes:
            _audit_change(change, actor=payload.allocated_by)

    return [AllocationRead.from_db(allocation=change.allocation) for change in changes]


@router.post("/{allocation_id}/cancel", response_model=AllocationRead)
async def cancel_allocation(
    allocation_id: str = Path(..., min_length=1),
    session: AsyncSession = Depends(get_session),
) -> AllocationRead:
    alloc_repo = SqlAlchemyAllocationRepository(session)
    async with session.begin():
        try:
            allocation, previous = await allocation_usecase.cancel(alloc_repo, allocation_id=allocation_id)
        except NotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="allocation not found")

        if previous != AllocationStatus.CANCELLED:
            try:
                emit_audit_log(
                    action="allocation.cancelled",
                    entity="allocation",
                    entity_id=allocation.id,
                    slot_id=allocation.slot_id,
                    session_plan_id=allocation.session_plan_id,
                    date=allocation.date.isoformat(),
                    status_from=previous,
                    status_to=allocation.status,
                )
            except RuntimeError:
                raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")

    return AllocationRead.from_db(allocation=allocation)


@router.get("/current", response_model=Optional[AllocationRead])
async def get_current_allocation(
    slot_id: str = Query(..., min_length=1),
    reference_date: date = Depends(get_reference_date),
    session: AsyncSession = Depends(get_session),
) -> Optional[AllocationRead]:
    allocation = await allocation_usecase.get_for_slot_and_date(
        SqlAlchemyAllocationRepository(session),
        slot_id=slot_id,
        on=reference_date,
    )
    return AllocationRead.from_db(allocation=allocation) if allocation is not None else None


@router.get("/pending", response_model=List[AllocationRead])
async def list_pending_allocations(
    reference_date: date = Depends(get_reference_date),
    session: AsyncSession = Depends(get_session),
) -> list[AllocationRead]:
    rows = await allocation_usecase.list_pending(
        SqlAlchemyAllocationRepository(session),
        from_date=reference_date,
    )
    return [AllocationRead.from_db(allocation=row) for row in rows]


@router.get("", response_model=List[AllocationRead])
async def list_allocations(
    reference_date: date = Depends(get_reference_date),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> list[AllocationRead]:
    alloc_repo = SqlAlchemyAllocationRepository(session)
    if start_date is None and end_date is None:
        rows = await allocation_usecase.list_by_date(alloc_repo, on=reference_date)
    elif start_date is None or end_date is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start_date and end_date go together")
    else:
        try:
            rows = await allocation_usecase.list_by_date_range(alloc_repo, start=start_date, end=end_date)
        except ValidationError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return [AllocationRead.from_db(allocation=row) for row in rows]


def _audit_change(change: AllocationChange, *, actor: Optional[str]) -> None:
    created = change.allocation
    try:
        if change.replaced is not None:
            emit_audit_log(
                action="allocation.replaced",
                entity="allocation",
                entity_id=change.replaced.id,
                slot_id=change.replaced.slot_id,
                session_plan_id=change.replaced.session_plan_id,
                date=change.replaced.date.isoformat(),
                status_from=AllocationStatus.SCHEDULED,
                status_to=change.replaced.status,
                actor=actor,
                extra={"replaced_by": created.id},
            )
        emit_audit_log(
            action="allocation.created",
            entity="allocation",
            entity_id=created.id,
            slot_id=created.slot_id,
            session_plan_id=created.session_plan_id,
            date=created.date.isoformat(),
            status_to=created.status,
            actor=actor,
        )
    except RuntimeError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")
