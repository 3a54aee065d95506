import logging
from datetime import date, datetime, timedelta

import pytest
from studio.domain.errors import ConfigurationError, PlanReferenceError, ValidationError
from studio.domain.services import (
    compute_occupancy,
    evaluate_capacity,
    validate_allocation_target,
    validate_capacity_values,
    validate_date_range,
)
from studio.models import (
    MembershipSubscription,
    SessionSlot,
    SessionType,
    SubscriptionStatus,
    TrialBooking,
    TrialStatus,
)

SLOT_ID = "slot-7am"
REF = date(2026, 3, 15)
BASE_CREATED = datetime(2025, 1, 1, 9, 0, 0)


def _slot(capacity: int = 10, exception_capacity: int = 2, *, is_active: bool = True) -> SessionSlot:
    return SessionSlot(
        id=SLOT_ID,
        display_name="7am batch",
        start_time="07:00",
        end_time="08:00",
        capacity=capacity,
        exception_capacity=exception_capacity,
        session_type=SessionType.OFFLINE,
        is_active=is_active,
        created_at=BASE_CREATED,
        updated_at=BASE_CREATED,
    )


def _sub(
    member_id: str,
    *,
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    start: date = date(2026, 3, 1),
    end: date = date(2026, 3, 31),
    created_offset: int = 0,
    slot_id: str = SLOT_ID,
    sub_id: str | None = None,
) -> MembershipSubscription:
    return MembershipSubscription(
        id=sub_id or f"sub-{member_id}-{start.isoformat()}",
        member_id=member_id,
        slot_id=slot_id,
        status=status,
        start_date=start,
        end_date=end,
        created_at=BASE_CREATED + timedelta(minutes=created_offset),
    )


def _trial(lead_id: str, *, on: date = REF, status: TrialStatus = TrialStatus.PENDING, slot_id: str = SLOT_ID) -> TrialBooking:
    return TrialBooking(
        id=f"trial-{lead_id}",
        lead_id=lead_id,
        slot_id=slot_id,
        date=on,
        status=status,
        created_at=BASE_CREATED,
    )


def _active_members(count: int) -> list[MembershipSubscription]:
    return [_sub(f"m{i + 1}", created_offset=i) for i in range(count)]


def test_under_capacity_has_no_exception_occupants() -> None:
    snap = compute_occupancy(_slot(), REF, _active_members(8), [])
    assert snap.total_booked == 8
    assert snap.available == 2
    assert snap.is_overbooked is False
    assert snap.overbooked_by == 0
    assert snap.exception_count == 0
    assert snap.regular_count == 8
    assert snap.utilization_percent == 80


def test_latest_joiners_spill_into_exception_tier() -> None:
    snap = compute_occupancy(_slot(), REF, _active_members(12), [])
    assert snap.exception_member_ids == ("m11", "m12")
    assert snap.regular_count == 10
    assert snap.exception_count == 2
    assert snap.is_overbooked is True
    assert snap.overbooked_by == 2
    assert snap.available == 0
    assert snap.utilization_percent == 120


def test_exception_tier_follows_created_at_not_input_order() -> None:
    subs = list(reversed(_active_members(7)))
    snap = compute_occupancy(_slot(capacity=4), REF, subs, [])
    assert snap.exception_member_ids == ("m5", "m6", "m7")
    for early in ("m1", "m2", "m3", "m4"):
        assert early not in snap.exception_member_ids


def test_created_at_ties_break_on_subscription_id() -> None:
    subs = [
        _sub("late", created_offset=0, sub_id="sub-b"),
        _sub("early", created_offset=0, sub_id="sub-a"),
    ]
    snap = compute_occupancy(_slot(capacity=1), REF, subs, [])
    assert snap.exception_member_ids == ("late",)


def test_renewal_counts_once_as_active() -> None:
    subs = [
        _sub("M", start=date(2026, 3, 1), end=date(2026, 3, 31), created_offset=0),
        _sub(
            "M",
            status=SubscriptionStatus.SCHEDULED,
            start=date(2026, 4, 1),
            end=date(2026, 4, 30),
            created_offset=5,
        ),
    ]
    snap = compute_occupancy(_slot(), REF, subs, [])
    assert snap.active_count == 1
    assert snap.new_scheduled_count == 0
    assert snap.total_booked == 1


def test_new_future_members_count_as_booked() -> None:
    subs = _active_members(3) + [
        _sub("new-1", status=SubscriptionStatus.SCHEDULED, start=date(2026, 4, 1), end=date(2026, 4, 30)),
        # active status with a future start is still a not-yet-started booking
        _sub("new-2", status=SubscriptionStatus.ACTIVE, start=date(2026, 3, 20), end=date(2026, 4, 19)),
    ]
    snap = compute_occupancy(_slot(), REF, subs, [])
    assert snap.active_count == 3
    assert snap.new_scheduled_count == 2
    assert snap.total_booked == 5
    assert snap.exception_count == 0


def test_inactive_and_foreign_subscriptions_are_ignored() -> None:
    subs = [
        _sub("expired", status=SubscriptionStatus.EXPIRED),
        _sub("cancelled", status=SubscriptionStatus.CANCELLED),
        _sub("ended", start=date(2026, 2, 1), end=date(2026, 3, 14)),
        _sub("other-slot", slot_id="slot-6pm"),
        _sub("kept"),
    ]
    snap = compute_occupancy(_slot(), REF, subs, [])
    assert snap.active_count == 1
    assert snap.new_scheduled_count == 0
    assert snap.total_booked == 1


def test_range_boundaries_are_inclusive() -> None:
    subs = [
        _sub("starts-today", start=REF, end=date(2026, 4, 14)),
        _sub("ends-today", start=date(2026, 2, 14), end=REF),
    ]
    snap = compute_occupancy(_slot(), REF, subs, [])
    assert snap.active_count == 2


def test_trials_are_reported_but_never_counted() -> None:
    trials = [
        _trial("l1"),
        _trial("l2", status=TrialStatus.CONFIRMED),
        _trial("l3", status=TrialStatus.CANCELLED),
        _trial("l4", on=REF + timedelta(days=1)),
        _trial("l5", slot_id="slot-6pm"),
    ]
    snap = compute_occupancy(_slot(), REF, _active_members(4), trials)
    assert snap.trial_count == 2
    assert snap.total_booked == 4
    assert snap.available == 6


@pytest.mark.parametrize(
    ("capacity", "active", "scheduled"),
    [(1, 0, 0), (1, 3, 1), (5, 5, 0), (5, 7, 2), (10, 4, 9), (3, 12, 0)],
)
def test_counts_always_reconcile(capacity: int, active: int, scheduled: int) -> None:
    subs = _active_members(active) + [
        _sub(f"s{i}", status=SubscriptionStatus.SCHEDULED, start=date(2026, 5, 1), end=date(2026, 5, 31))
        for i in range(scheduled)
    ]
    snap = compute_occupancy(_slot(capacity=capacity), REF, subs, [])
    assert snap.regular_count + snap.exception_count == snap.total_booked
    assert snap.available == max(0, capacity - snap.total_booked)
    assert snap.available >= 0
    assert snap.exception_count == max(0, active - capacity)


def test_utilization_rounds_half_up() -> None:
    snap = compute_occupancy(_slot(capacity=8), REF, _active_members(1), [])
    assert snap.utilization_percent == 13


def test_non_positive_capacity_leaves_utilization_undefined(caplog: pytest.LogCaptureFixture) -> None:
    slot = _slot(capacity=0)
    with caplog.at_level(logging.WARNING, logger="studio.domain.services"):
        snap = compute_occupancy(slot, REF, _active_members(2), [])
    assert snap.utilization_percent is None
    assert snap.available == 0
    assert snap.is_overbooked is True
    assert snap.exception_count == 2
    assert "non-positive regular capacity" in caplog.text


def test_capacity_check_open_seat() -> None:
    check = evaluate_capacity(compute_occupancy(_slot(), REF, _active_members(3), []))
    assert check.available is True
    assert check.is_exception_only is False
    assert check.current_bookings == 3
    assert check.normal_capacity == 10
    assert check.total_capacity == 12
    assert check.message == "Available (3/10 regular slots used)"


def test_capacity_check_exception_only() -> None:
    check = evaluate_capacity(compute_occupancy(_slot(), REF, _active_members(11), []))
    assert check.available is True
    assert check.is_exception_only is True
    assert "exception" in check.message


def test_capacity_check_full() -> None:
    check = evaluate_capacity(compute_occupancy(_slot(), REF, _active_members(12), []))
    assert check.available is False
    assert check.is_exception_only is True
    assert check.message == "Slot is full (12/12)"


def test_capacity_check_rejects_misconfigured_slot() -> None:
    snap = compute_occupancy(_slot(capacity=0), REF, [], [])
    with pytest.raises(ConfigurationError):
        evaluate_capacity(snap)


@pytest.mark.parametrize(("regular", "exception"), [(0, 1), (-1, 0), (5, -1)])
def test_capacity_values_rejected(regular: int, exception: int) -> None:
    with pytest.raises(ValidationError):
        validate_capacity_values(regular, exception)


def test_capacity_values_accept_zero_exception() -> None:
    validate_capacity_values(1, 0)


def test_date_range_rejects_reversed() -> None:
    with pytest.raises(ValidationError):
        validate_date_range(date(2026, 4, 2), date(2026, 4, 1))
    validate_date_range(date(2026, 4, 1), date(2026, 4, 1))


def test_allocation_target_rules() -> None:
    with pytest.raises(PlanReferenceError):
        validate_allocation_target(_slot(), plan_exists=False, already_executed=False)
    with pytest.raises(ValidationError):
        validate_allocation_target(_slot(is_active=False), plan_exists=True, already_executed=False)
    with pytest.raises(ValidationError):
        validate_allocation_target(_slot(), plan_exists=True, already_executed=True)
    validate_allocation_target(_slot(), plan_exists=True, already_executed=False)
