import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from ..domain.errors import NotFoundError, PlanReferenceError
from ..domain.repositories import (
    AllocationRepository,
    SessionExecutionRepository,
    SessionPlanRepository,
    SlotRepository,
)
from ..domain.services import validate_allocation_target, validate_date_range
from ..models import AllocationStatus, SessionPlanAllocation, SessionSlot
from ..utils.time import utc_now_naive

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationChange:
    allocation: SessionPlanAllocation
    replaced: Optional[SessionPlanAllocation] = None


async def allocate(
    slot_repo: SlotRepository,
    plan_repo: SessionPlanRepository,
    exec_repo: SessionExecutionRepository,
    alloc_repo: AllocationRepository,
    *,
    session_plan_id: str,
    slot_id: str,
    on: date,
    allocated_by: str | None = None,
) -> AllocationChange:
    """
    Schedule a plan on a slot for a date, cancelling whatever was scheduled there before.
    Must run inside a single transaction; the slot row lock serializes replacements.
    """
    slot = await slot_repo.get_for_update(slot_id)
    if slot is None:
        raise NotFoundError("slot not found")

    validate_allocation_target(
        slot,
        plan_exists=await plan_repo.exists(session_plan_id),
        already_executed=await exec_repo.has_execution(slot.id, on),
    )
    return await _replace_scheduled(
        alloc_repo,
        slot=slot,
        session_plan_id=session_plan_id,
        on=on,
        allocated_by=allocated_by,
    )


async def allocate_to_all_slots(
    slot_repo: SlotRepository,
    plan_repo: SessionPlanRepository,
    exec_repo: SessionExecutionRepository,
    alloc_repo: AllocationRepository,
    *,
    session_plan_id: str,
    on: date,
    allocated_by: str | None = None,
) -> List[AllocationChange]:
    if not await plan_repo.exists(session_plan_id):
        raise PlanReferenceError("session plan not found")

    changes: List[AllocationChange] = []
    for active in await slot_repo.list_active():
        slot = await slot_repo.get_for_update(active.id)
        if slot is None or not slot.is_active:
            continue
        # A plan is never reassigned once the session has been run.
        if await exec_repo.has_execution(slot.id, on):
            logger.info("skipping slot %s on %s: session already executed", slot.id, on.isoformat())
            continue
        changes.append(
            await _replace_scheduled(
                alloc_repo,
                slot=slot,
                session_plan_id=session_plan_id,
                on=on,
                allocated_by=allocated_by,
            )
        )
    return changes


async def cancel(
    alloc_repo: AllocationRepository,
    *,
    allocation_id: str,
) -> tuple[SessionPlanAllocation, AllocationStatus]:
    """Returns the allocation and the status it had before the call."""
    allocation = await alloc_repo.get_for_update(allocation_id)
    if allocation is None:
        raise NotFoundError("allocation not found")
    previous = allocation.status
    # Idempotent: already cancelled returns as-is
    if previous == AllocationStatus.CANCELLED:
        return allocation, previous

    _mark_cancelled(allocation)
    return await alloc_repo.save(allocation), previous


async def get_for_slot_and_date(
    alloc_repo: AllocationRepository,
    *,
    slot_id: str,
    on: date,
) -> SessionPlanAllocation | None:
    return await alloc_repo.get_scheduled(slot_id, on)


async def list_by_date(alloc_repo: AllocationRepository, *, on: date) -> List[SessionPlanAllocation]:
    return list(await alloc_repo.list_by_date(on))


async def list_by_date_range(
    alloc_repo: AllocationRepository,
    *,
    start: date,
    end: date,
) -> List[SessionPlanAllocation]:
    validate_date_range(start, end)
    return list(await alloc_repo.list_by_date_range(start, end))


async def list_pending(alloc_repo: AllocationRepository, *, from_date: date) -> List[SessionPlanAllocation]:
    return list(await alloc_repo.list_scheduled_from(from_date))


async def _replace_scheduled(
    alloc_repo: AllocationRepository,
    *,
    slot: SessionSlot,
    session_plan_id: str,
    on: date,
    allocated_by: str | None,
) -> AllocationChange:
    existing = await alloc_repo.get_scheduled(slot.id, on)
    if existing is not None:
        _mark_cancelled(existing)
        # Flushed before the insert so the scheduled-row unique key is free.
        await alloc_repo.save(existing)

    created = await alloc_repo.create(
        session_plan_id=session_plan_id,
        slot_id=slot.id,
        on=on,
        allocated_by=allocated_by,
    )
    return AllocationChange(allocation=created, replaced=existing)


def _mark_cancelled(allocation: SessionPlanAllocation) -> None:
    allocation.status = AllocationStatus.CANCELLED
    allocation.scheduled_flag = None
    allocation.updated_at = utc_now_naive()
