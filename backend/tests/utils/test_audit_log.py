import json
from typing import Any, List

import pytest
from studio.models import AllocationStatus
from studio.utils import audit_log
from studio.utils.request_id import set_request_id


def test_emit_audit_log_outputs_json(monkeypatch) -> None:
    messages: List[str] = []

    class DummyLogger:
        def info(self, message: str) -> None:
            messages.append(message)

    dummy_logger = DummyLogger()
    monkeypatch.setattr(audit_log, "_audit_logger", dummy_logger)

    set_request_id("req-123")
    audit_log.emit_audit_log(
        action="allocation.created",
        entity="allocation",
        entity_id="alloc-1",
        slot_id="slot-7am",
        session_plan_id="plan-1",
        date="2026-02-20",
        status_to=AllocationStatus.SCHEDULED,
    )
    set_request_id(None)
    assert len(messages) == 1
    payload = json.loads(messages[0])
    assert payload["action"] == "allocation.created"
    assert payload["entity_id"] == "alloc-1"
    assert payload["request_id"] == "req-123"
    assert payload["status_to"] == "scheduled"
    assert "status_from" not in payload
    assert "timestamp" in payload


def test_emit_audit_log_merges_extra(monkeypatch) -> None:
    messages: List[str] = []

    class DummyLogger:
        def info(self, message: str) -> None:
            messages.append(message)

    monkeypatch.setattr(audit_log, "_audit_logger", DummyLogger())

    audit_log.emit_audit_log(
        action="slot.capacity_updated",
        entity="slot",
        entity_id="slot-7am",
        slot_id="slot-7am",
        extra={"capacity_from": 10, "capacity_to": 12},
    )
    payload = json.loads(messages[0])
    assert payload["capacity_from"] == 10
    assert payload["capacity_to"] == 12


def test_emit_audit_log_raises_on_logger_failure(monkeypatch) -> None:
    class DummyLogger:
        def info(self, _: Any) -> None:
            raise ValueError("fail")

    dummy_logger = DummyLogger()
    monkeypatch.setattr(audit_log, "_audit_logger", dummy_logger)

    with pytest.raises(RuntimeError):
        audit_log.emit_audit_log(
            action="allocation.cancelled",
            entity="allocation",
            entity_id="alloc-1",
            slot_id="slot-7am",
            status_from=AllocationStatus.SCHEDULED,
            status_to=AllocationStatus.CANCELLED,
        )
