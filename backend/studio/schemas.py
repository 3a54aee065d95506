from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from .domain.services import CapacityCheck, SlotOccupancySnapshot
from .models import AllocationStatus, SessionPlanAllocation, SessionSlot, SessionType
from .utils.time import utc_naive_to_studio


class SlotRead(BaseModel):
    slot_id: str
    display_name: str
    start_time: str
    end_time: str
    capacity: int
    exception_capacity: int
    session_type: SessionType
    is_active: bool

    @classmethod
    def from_db(cls, *, slot: SessionSlot) -> "SlotRead":
        return cls(
            slot_id=slot.id,
            display_name=slot.display_name,
            start_time=slot.start_time,
            end_time=slot.end_time,
            capacity=slot.capacity,
            exception_capacity=slot.exception_capacity,
            session_type=slot.session_type,
            is_active=slot.is_active,
        )


class SlotCapacityUpdate(BaseModel):
    capacity: int = Field(ge=1)
    exception_capacity: int = Field(ge=0)


class SlotOccupancyRead(BaseModel):
    slot_id: str
    date: date
    regular_capacity: int
    exception_capacity: int
    total_booked: int
    active_count: int
    new_scheduled_count: int
    regular_count: int
    exception_count: int
    exception_member_ids: list[str]
    trial_count: int
    available: int
    is_overbooked: bool
    overbooked_by: int
    utilization_percent: Optional[int]

    @classmethod
    def from_snapshot(cls, snapshot: SlotOccupancySnapshot) -> "SlotOccupancyRead":
        return cls(
            slot_id=snapshot.slot_id,
            date=snapshot.reference_date,
            regular_capacity=snapshot.regular_capacity,
            exception_capacity=snapshot.exception_capacity,
            total_booked=snapshot.total_booked,
            active_count=snapshot.active_count,
            new_scheduled_count=snapshot.new_scheduled_count,
            regular_count=snapshot.regular_count,
            exception_count=snapshot.exception_count,
            exception_member_ids=list(snapshot.exception_member_ids),
            trial_count=snapshot.trial_count,
            available=snapshot.available,
            is_overbooked=snapshot.is_overbooked,
            overbooked_by=snapshot.overbooked_by,
            utilization_percent=snapshot.utilization_percent,
        )


class CapacityCheckRead(BaseModel):
    available: bool
    is_exception_only: bool
    current_bookings: int
    normal_capacity: int
    total_capacity: int
    message: str

    @classmethod
    def from_check(cls, check: CapacityCheck) -> "CapacityCheckRead":
        return cls(
            available=check.available,
            is_exception_only=check.is_exception_only,
            current_bookings=check.current_bookings,
            normal_capacity=check.normal_capacity,
            total_capacity=check.total_capacity,
            message=check.message,
        )


class AllocationCreate(BaseModel):
    session_plan_id: str = Field(min_length=1)
    slot_id: str = Field(min_length=1)
    date: date
    allocated_by: Optional[str] = None


class AllocationAllSlotsCreate(BaseModel):
    session_plan_id: str = Field(min_length=1)
    date: date
    allocated_by: Optional[str] = None


class AllocationRead(BaseModel):
    allocation_id: str
    session_plan_id: str
    slot_id: str
    date: date
    status: AllocationStatus
    allocated_by: Optional[str]
    created_at: datetime

    @field_serializer("created_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @classmethod
    def from_db(cls, *, allocation: SessionPlanAllocation) -> "AllocationRead":
        return cls(
            allocation_id=allocation.id,
            session_plan_id=allocation.session_plan_id,
            slot_id=allocation.slot_id,
            date=allocation.date,
            status=allocation.status,
            allocated_by=allocation.allocated_by,
            created_at=utc_naive_to_studio(allocation.created_at),
        )
