from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "allocation.created",
    "allocation.replaced",
    "allocation.cancelled",
    "slot.capacity_updated",
]
AuditEntity = Literal["allocation", "slot"]

_audit_logger = logging.getLogger("audit")
_audit_logger.setLevel(logging.INFO)
if not _audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(handler)
_audit_logger.propagate = False


def _enum_to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def emit_audit_log(
    *,
    action: AuditAction,
    entity: AuditEntity,
    entity_id: str,
    slot_id: Optional[str],
    session_plan_id: Optional[str] = None,
    date: Optional[str] = None,
    status_from: Optional[Any] = None,
    status_to: Optional[Any] = None,
    actor: Optional[str] = None,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit structured JSON audit log. Raises RuntimeError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "entity": entity,
        "entity_id": entity_id,
        "request_id": get_request_id(),
        "slot_id": slot_id,
        "session_plan_id": session_plan_id,
        "date": date,
        "status_from": _enum_to_str(status_from),
        "status_to": _enum_to_str(status_to),
        "actor": actor,
    }
    if message is not None:
        payload["message"] = message
    if extra:
        payload.update(extra)

    # Drop None values to keep the log compact.
    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact_payload, ensure_ascii=True))
    except Exception as exc:  # pragma: no cover - defensive
        raise RuntimeError("failed to emit audit log") from exc
