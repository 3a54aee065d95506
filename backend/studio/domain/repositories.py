from __future__ import annotations

from datetime import date, datetime
from typing import Protocol, Sequence

from ..models import (
    MembershipSubscription,
    SessionPlanAllocation,
    SessionSlot,
    SubscriptionStatus,
    TrialBooking,
    TrialStatus,
)


class SlotRecord(Protocol):
    id: str
    capacity: int
    exception_capacity: int
    is_active: bool


class SubscriptionRecord(Protocol):
    id: str
    member_id: str
    slot_id: str
    status: SubscriptionStatus
    start_date: date
    end_date: date
    created_at: datetime


class TrialRecord(Protocol):
    slot_id: str
    date: date
    status: TrialStatus


class SlotRepository(Protocol):
    async def list_active(self) -> Sequence[SessionSlot]: ...

    async def get(self, slot_id: str) -> SessionSlot | None: ...

    async def get_for_update(self, slot_id: str) -> SessionSlot | None: ...

    async def update_capacity(self, slot: SessionSlot) -> SessionSlot: ...


class SubscriptionRepository(Protocol):
    async def list_for_slot(self, slot_id: str) -> Sequence[MembershipSubscription]: ...


class TrialBookingRepository(Protocol):
    async def list_for_slot_and_date(self, slot_id: str, on: date) -> Sequence[TrialBooking]: ...


class SessionExecutionRepository(Protocol):
    async def has_execution(self, slot_id: str, on: date) -> bool: ...


class SessionPlanRepository(Protocol):
    async def exists(self, plan_id: str) -> bool: ...


class AllocationRepository(Protocol):
    async def get_for_update(self, allocation_id: str) -> SessionPlanAllocation | None: ...

    async def get_scheduled(self, slot_id: str, on: date) -> SessionPlanAllocation | None: ...

    async def create(
        self,
        *,
        session_plan_id: str,
        slot_id: str,
        on: date,
        allocated_by: str | None,
    ) -> SessionPlanAllocation: ...

    async def save(self, allocation: SessionPlanAllocation) -> SessionPlanAllocation: ...

    async def list_by_date(self, on: date) -> Sequence[SessionPlanAllocation]: ...

    async def list_by_date_range(self, start: date, end: date) -> Sequence[SessionPlanAllocation]: ...

    async def list_scheduled_from(self, start: date) -> Sequence[SessionPlanAllocation]: ...
