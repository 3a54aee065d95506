from __future__ import annotations

from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.repositories import (
    AllocationRepository,
    SessionExecutionRepository,
    SessionPlanRepository,
    SlotRepository,
    SubscriptionRepository,
    TrialBookingRepository,
)
from ..models import (
    AllocationStatus,
    MembershipSubscription,
    SessionExecution,
    SessionPlan,
    SessionPlanAllocation,
    SessionSlot,
    TrialBooking,
)
from ..utils.time import utc_now_naive


class SqlAlchemySlotRepository(SlotRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_active(self) -> List[SessionSlot]:
        stmt = (
            select(SessionSlot)
            .where(SessionSlot.is_active.is_(True))
            .order_by(SessionSlot.created_at, SessionSlot.id)
        )
        return list((await self.session.scalars(stmt)).all())

    async def get(self, slot_id: str) -> Optional[SessionSlot]:
        return await self.session.get(SessionSlot, slot_id)

    async def get_for_update(self, slot_id: str) -> Optional[SessionSlot]:
        result = await self.session.scalar(
            select(SessionSlot).where(SessionSlot.id == slot_id).with_for_update()
        )
        return result if isinstance(result, SessionSlot) else None

    async def update_capacity(self, slot: SessionSlot) -> SessionSlot:
        slot.updated_at = utc_now_naive()
        self.session.add(slot)
        await self.session.flush()
        return slot


class SqlAlchemySubscriptionRepository(SubscriptionRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_for_slot(self, slot_id: str) -> List[MembershipSubscription]:
        stmt = select(MembershipSubscription).where(MembershipSubscription.slot_id == slot_id)
        return list((await self.session.scalars(stmt)).all())


class SqlAlchemyTrialBookingRepository(TrialBookingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_for_slot_and_date(self, slot_id: str, on: date) -> List[TrialBooking]:
        stmt = select(TrialBooking).where(TrialBooking.slot_id == slot_id, TrialBooking.date == on)
        return list((await self.session.scalars(stmt)).all())


class SqlAlchemySessionExecutionRepository(SessionExecutionRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def has_execution(self, slot_id: str, on: date) -> bool:
        stmt = select(SessionExecution.id).where(
            SessionExecution.slot_id == slot_id,
            SessionExecution.date == on,
        )
        return await self.session.scalar(stmt) is not None


class SqlAlchemySessionPlanRepository(SessionPlanRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def exists(self, plan_id: str) -> bool:
        return await self.session.scalar(select(SessionPlan.id).where(SessionPlan.id == plan_id)) is not None


class SqlAlchemyAllocationRepository(AllocationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_for_update(self, allocation_id: str) -> Optional[SessionPlanAllocation]:
        result = await self.session.scalar(
            select(SessionPlanAllocation).where(SessionPlanAllocation.id == allocation_id).with_for_update()
        )
        return result if isinstance(result, SessionPlanAllocation) else None

    async def get_scheduled(self, slot_id: str, on: date) -> Optional[SessionPlanAllocation]:
        stmt = select(SessionPlanAllocation).where(
            SessionPlanAllocation.slot_id == slot_id,
            SessionPlanAllocation.date == on,
            SessionPlanAllocation.status == AllocationStatus.SCHEDULED,
        )
        return await self.session.scalar(stmt)

    async def create(
        self,
        *,
        session_plan_id: str,
        slot_id: str,
        on: date,
        allocated_by: str | None,
    ) -> SessionPlanAllocation:
        now = utc_now_naive()
        allocation = SessionPlanAllocation(
            session_plan_id=session_plan_id,
            slot_id=slot_id,
            date=on,
            allocated_by=allocated_by,
            status=AllocationStatus.SCHEDULED,
            scheduled_flag=True,
            created_at=now,
            updated_at=now,
        )
        self.session.add(allocation)
        await self.session.flush()
        return allocation

    async def save(self, allocation: SessionPlanAllocation) -> SessionPlanAllocation:
        self.session.add(allocation)
        await self.session.flush()
        return allocation

    async def list_by_date(self, on: date) -> List[SessionPlanAllocation]:
        stmt = (
            select(SessionPlanAllocation)
            .where(SessionPlanAllocation.date == on)
            .order_by(SessionPlanAllocation.slot_id, SessionPlanAllocation.created_at)
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_by_date_range(self, start: date, end: date) -> List[SessionPlanAllocation]:
        stmt = (
            select(SessionPlanAllocation)
            .where(SessionPlanAllocation.date >= start, SessionPlanAllocation.date <= end)
            .order_by(SessionPlanAllocation.date, SessionPlanAllocation.slot_id, SessionPlanAllocation.created_at)
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_scheduled_from(self, start: date) -> List[SessionPlanAllocation]:
        stmt = (
            select(SessionPlanAllocation)
            .where(
                SessionPlanAllocation.status == AllocationStatus.SCHEDULED,
                SessionPlanAllocation.date >= start,
            )
            .order_by(SessionPlanAllocation.date, SessionPlanAllocation.slot_id)
        )
        return list((await self.session.scalars(stmt)).all())
