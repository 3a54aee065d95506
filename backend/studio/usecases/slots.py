import logging
from datetime import date
from typing import List

from ..domain.errors import NotFoundError
from ..domain.repositories import SlotRepository, SubscriptionRepository, TrialBookingRepository
from ..domain.services import (
    CapacityCheck,
    SlotOccupancySnapshot,
    compute_occupancy,
    evaluate_capacity,
    validate_capacity_values,
    validate_date_range,
)
from ..models import SessionSlot

logger = logging.getLogger(__name__)


async def get_active_slots(slot_repo: SlotRepository) -> List[SessionSlot]:
    return list(await slot_repo.list_active())


async def get_slot(slot_repo: SlotRepository, *, slot_id: str) -> SessionSlot:
    slot = await slot_repo.get(slot_id)
    if slot is None:
        raise NotFoundError("slot not found")
    return slot


async def update_capacity(
    slot_repo: SlotRepository,
    *,
    slot_id: str,
    regular_capacity: int,
    exception_capacity: int,
) -> tuple[SessionSlot, int, int]:
    """Returns the updated slot and its previous (regular, exception) capacity."""
    validate_capacity_values(regular_capacity, exception_capacity)
    slot = await slot_repo.get_for_update(slot_id)
    if slot is None:
        raise NotFoundError("slot not found")

    previous = (slot.capacity, slot.exception_capacity)
    slot.capacity = regular_capacity
    slot.exception_capacity = exception_capacity
    updated = await slot_repo.update_capacity(slot)
    return updated, previous[0], previous[1]


async def get_slot_occupancy(
    slot_repo: SlotRepository,
    sub_repo: SubscriptionRepository,
    trial_repo: TrialBookingRepository,
    *,
    slot_id: str,
    reference_date: date,
) -> SlotOccupancySnapshot:
    slot = await get_slot(slot_repo, slot_id=slot_id)
    return await _occupancy_for(slot, sub_repo, trial_repo, reference_date)


async def list_occupancy(
    slot_repo: SlotRepository,
    sub_repo: SubscriptionRepository,
    trial_repo: TrialBookingRepository,
    *,
    reference_date: date,
) -> List[SlotOccupancySnapshot]:
    return [
        await _occupancy_for(slot, sub_repo, trial_repo, reference_date)
        for slot in await slot_repo.list_active()
    ]


async def check_slot_capacity(
    slot_repo: SlotRepository,
    sub_repo: SubscriptionRepository,
    trial_repo: TrialBookingRepository,
    *,
    slot_id: str,
    start_date: date,
    end_date: date,
) -> CapacityCheck:
    """
    Can a new subscription for [start_date, end_date] be added to the slot?
    Occupancy at the start date stands in for the whole range.
    """
    validate_date_range(start_date, end_date)
    snapshot = await get_slot_occupancy(
        slot_repo,
        sub_repo,
        trial_repo,
        slot_id=slot_id,
        reference_date=start_date,
    )
    return evaluate_capacity(snapshot)


async def _occupancy_for(
    slot: SessionSlot,
    sub_repo: SubscriptionRepository,
    trial_repo: TrialBookingRepository,
    reference_date: date,
) -> SlotOccupancySnapshot:
    subscriptions = await sub_repo.list_for_slot(slot.id)
    trials = await trial_repo.list_for_slot_and_date(slot.id, reference_date)
    snapshot = compute_occupancy(slot, reference_date, subscriptions, trials)
    if snapshot.is_overbooked:
        logger.info(
            "slot %s overbooked by %d on %s", slot.id, snapshot.overbooked_by, reference_date.isoformat()
        )
    return snapshot
