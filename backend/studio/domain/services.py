from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from ..models import SubscriptionStatus, TrialStatus
from .errors import ConfigurationError, PlanReferenceError, ValidationError
from .repositories import SlotRecord, SubscriptionRecord, TrialRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotOccupancySnapshot:
    slot_id: str
    reference_date: date
    regular_capacity: int
    exception_capacity: int
    total_booked: int
    active_count: int
    new_scheduled_count: int
    regular_count: int
    exception_count: int
    exception_member_ids: tuple[str, ...]
    trial_count: int
    available: int
    is_overbooked: bool
    overbooked_by: int
    utilization_percent: Optional[int]


@dataclass(frozen=True)
class CapacityCheck:
    available: bool
    is_exception_only: bool
    current_bookings: int
    normal_capacity: int
    total_capacity: int
    message: str


def compute_occupancy(
    slot: SlotRecord,
    reference_date: date,
    subscriptions: Iterable[SubscriptionRecord],
    trials: Iterable[TrialRecord],
) -> SlotOccupancySnapshot:
    """
    Pure occupancy computation for one slot on one calendar date.

    Active subscriptions covering the date and not-yet-started ones count as booked, except
    scheduled renewals of members who are already active. Active occupants beyond regular
    capacity, ordered by creation time, land in the exception tier. Overbooking is measured
    against regular capacity only.
    """
    capacity = slot.capacity
    slot_subs = [s for s in subscriptions if s.slot_id == slot.id]

    active = [
        s
        for s in slot_subs
        if s.status == SubscriptionStatus.ACTIVE and s.start_date <= reference_date <= s.end_date
    ]
    active_member_ids = {s.member_id for s in active}

    scheduled = [
        s
        for s in slot_subs
        if s.status == SubscriptionStatus.SCHEDULED
        or (s.status == SubscriptionStatus.ACTIVE and s.start_date > reference_date)
    ]
    # Renewals: the member already holds a seat through an active record.
    new_scheduled = [s for s in scheduled if s.member_id not in active_member_ids]

    total_booked = len(active) + len(new_scheduled)

    fifo = sorted(active, key=lambda s: (s.created_at, s.id))
    exception_member_ids: list[str] = []
    for sub in fifo[max(capacity, 0):]:
        if sub.member_id not in exception_member_ids:
            exception_member_ids.append(sub.member_id)
    exception_count = len(exception_member_ids)

    trial_count = sum(
        1
        for t in trials
        if t.slot_id == slot.id and t.date == reference_date and t.status != TrialStatus.CANCELLED
    )

    is_overbooked = total_booked > capacity
    utilization: Optional[int]
    if capacity <= 0:
        logger.warning("slot %s has non-positive regular capacity %d; utilization undefined", slot.id, capacity)
        utilization = None
    else:
        utilization = _percent_half_up(total_booked, capacity)

    return SlotOccupancySnapshot(
        slot_id=slot.id,
        reference_date=reference_date,
        regular_capacity=capacity,
        exception_capacity=slot.exception_capacity,
        total_booked=total_booked,
        active_count=len(active),
        new_scheduled_count=len(new_scheduled),
        regular_count=total_booked - exception_count,
        exception_count=exception_count,
        exception_member_ids=tuple(exception_member_ids),
        trial_count=trial_count,
        available=max(0, capacity - total_booked),
        is_overbooked=is_overbooked,
        overbooked_by=total_booked - capacity if is_overbooked else 0,
        utilization_percent=utilization,
    )


def evaluate_capacity(snapshot: SlotOccupancySnapshot) -> CapacityCheck:
    """Decide whether one more subscription fits, given the occupancy at its start date."""
    if snapshot.regular_capacity < 1:
        raise ConfigurationError(f"slot {snapshot.slot_id} has non-positive regular capacity")

    current = snapshot.total_booked
    normal = snapshot.regular_capacity
    total = normal + snapshot.exception_capacity
    available = current < total
    is_exception_only = current >= normal

    if not available:
        message = f"Slot is full ({current}/{total})"
    elif is_exception_only:
        message = f"Normal capacity full. Will use exception slot ({current}/{total})"
    else:
        message = f"Available ({current}/{normal} regular slots used)"

    return CapacityCheck(
        available=available,
        is_exception_only=is_exception_only,
        current_bookings=current,
        normal_capacity=normal,
        total_capacity=total,
        message=message,
    )


def validate_capacity_values(regular_capacity: int, exception_capacity: int) -> None:
    if regular_capacity < 0 or exception_capacity < 0:
        raise ValidationError("capacity values must not be negative")
    if regular_capacity < 1:
        raise ValidationError("regular capacity must be >= 1")


def validate_date_range(start: date, end: date) -> None:
    if start > end:
        raise ValidationError("start date must not be after end date")


def validate_allocation_target(
    slot: SlotRecord,
    *,
    plan_exists: bool,
    already_executed: bool,
) -> None:
    """
    Pure validation for assigning a plan to a slot on a date.
    Raises domain errors when the plan is unknown, the slot is inactive,
    or the session for that slot and date has already been run.
    """
    if not plan_exists:
        raise PlanReferenceError("session plan not found")
    if not slot.is_active:
        raise ValidationError("slot is not active")
    if already_executed:
        raise ValidationError("session already executed for this slot and date")


def _percent_half_up(part: int, whole: int) -> int:
    # round(part / whole * 100) with halves rounded up, in integer arithmetic.
    return (part * 200 + whole) // (2 * whole)
