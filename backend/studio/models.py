from __future__ import annotations

import datetime as dt
import uuid
from enum import StrEnum
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import Date, DateTime, Integer, String


class Base(DeclarativeBase):
    pass


def _uuid() -> str:
    return str(uuid.uuid4())


def _str_enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda cls: [e.value for e in cls],
        native_enum=False,
    )


class SessionType(StrEnum):
    ONLINE = "online"
    OFFLINE = "offline"
    HYBRID = "hybrid"


class SubscriptionStatus(StrEnum):
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class TrialStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ATTENDED = "attended"
    NO_SHOW = "no-show"
    CANCELLED = "cancelled"


class AllocationStatus(StrEnum):
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"


class SessionSlot(Base):
    __tablename__ = "session_slots"
    __table_args__ = (
        CheckConstraint("capacity >= 1", name="chk_slots_capacity"),
        CheckConstraint("exception_capacity >= 0", name="chk_slots_exception_capacity"),
        Index("idx_slots_active", "is_active"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    exception_capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    session_type: Mapped[SessionType] = mapped_column(
        _str_enum(SessionType), nullable=False, default=SessionType.OFFLINE
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    allocations: Mapped[list["SessionPlanAllocation"]] = relationship(back_populates="slot")


class MembershipSubscription(Base):
    __tablename__ = "membership_subscriptions"
    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="chk_subs_dates"),
        Index("idx_subs_slot", "slot_id"),
        Index("idx_subs_member", "member_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    member_id: Mapped[str] = mapped_column(String(36), nullable=False)
    slot_id: Mapped[str] = mapped_column(ForeignKey("session_slots.id"), nullable=False)
    status: Mapped[SubscriptionStatus] = mapped_column(
        _str_enum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.SCHEDULED
    )
    start_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    end_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class TrialBooking(Base):
    __tablename__ = "trial_bookings"
    __table_args__ = (Index("idx_trials_slot_date", "slot_id", "date"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    lead_id: Mapped[str] = mapped_column(String(36), nullable=False)
    slot_id: Mapped[str] = mapped_column(ForeignKey("session_slots.id"), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    status: Mapped[TrialStatus] = mapped_column(
        _str_enum(TrialStatus), nullable=False, default=TrialStatus.PENDING
    )
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class SessionPlan(Base):
    __tablename__ = "session_plans"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    level: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class SessionExecution(Base):
    __tablename__ = "session_executions"
    __table_args__ = (Index("idx_executions_slot_date", "slot_id", "date"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    session_plan_id: Mapped[str] = mapped_column(ForeignKey("session_plans.id"), nullable=False)
    slot_id: Mapped[str] = mapped_column(ForeignKey("session_slots.id"), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class SessionPlanAllocation(Base):
    __tablename__ = "session_plan_allocations"
    __table_args__ = (
        # scheduled_flag is TRUE while scheduled and NULL once cancelled:
        # at most one scheduled row per slot+date, any number of cancelled ones.
        UniqueConstraint("slot_id", "date", "scheduled_flag", name="uq_allocations_scheduled_slot_date"),
        Index("idx_allocations_date", "date"),
        Index("idx_allocations_plan", "session_plan_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    session_plan_id: Mapped[str] = mapped_column(ForeignKey("session_plans.id"), nullable=False)
    slot_id: Mapped[str] = mapped_column(ForeignKey("session_slots.id"), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    allocated_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[AllocationStatus] = mapped_column(
        _str_enum(AllocationStatus), nullable=False, default=AllocationStatus.SCHEDULED
    )
    scheduled_flag: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True, default=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    slot: Mapped["SessionSlot"] = relationship(back_populates="allocations")
