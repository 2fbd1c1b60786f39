"""Audit trail for reporting operations.

Regulators may ask who generated a snapshot and who pulled reports that
expose player personal data. Both are written as ``audit_event`` lines on
the ``audit`` logger, with personal fields masked.
"""

from typing import Any

import structlog

logger = structlog.get_logger("audit")

_VISIBLE_SUFFIX = 4
_PERSONAL_KEYS = ("email", "phone", "password", "token", "secret")


class AuditAction:
    """Audit action names."""

    SNAPSHOT_GENERATE = "snapshot.generate"
    SNAPSHOT_GENERATE_FAILED = "snapshot.generate.failed"

    PLAYER_LIST_VIEW = "player_data.list_view"
    PLAYER_LTV_VIEW = "player_data.ltv_view"
    CHURN_LIST_VIEW = "player_data.churn_view"


def _mask(value: Any) -> str:
    if isinstance(value, str) and len(value) > _VISIBLE_SUFFIX:
        return "****" + value[-_VISIBLE_SUFFIX:]
    return "****"


def _sanitize_details(details: dict[str, Any]) -> dict[str, Any]:
    """Mask personal and secret fields, recursing into nested dicts."""
    clean: dict[str, Any] = {}
    for key, value in details.items():
        if any(marker in key.lower() for marker in _PERSONAL_KEYS):
            clean[key] = _mask(value)
        elif isinstance(value, dict):
            clean[key] = _sanitize_details(value)
        else:
            clean[key] = value
    return clean


def audit_log(
    action: str,
    tenant_id: int | None = None,
    resource_type: str | None = None,
    resource_id: str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
    ip_address: str | None = None,
) -> None:
    """Write one audit event. Failed actions go out at warning level.

    Context fields left as None are omitted from the event.
    """
    context = {
        "tenant_id": tenant_id,
        "resource_type": resource_type,
        "resource_id": resource_id,
        "ip_address": ip_address,
        "details": _sanitize_details(details) if details else None,
    }
    event = {"audit": True, "action": action, "success": success}
    event.update({key: value for key, value in context.items() if value is not None})

    emit = logger.info if success else logger.warning
    emit("audit_event", **event)


def audit_snapshot_generated(
    snapshot_id: str,
    snapshot_type: str,
    tenant_id: int | None,
    generated_by: str,
    period_start: str,
    period_end: str,
) -> None:
    """Record a persisted snapshot."""
    audit_log(
        action=AuditAction.SNAPSHOT_GENERATE,
        tenant_id=tenant_id,
        resource_type="analytics_snapshot",
        resource_id=snapshot_id,
        details={
            "type": snapshot_type,
            "generated_by": generated_by,
            "period_start": period_start,
            "period_end": period_end,
        },
    )


def audit_snapshot_failed(
    snapshot_type: str,
    tenant_id: int | None,
    generated_by: str,
    error: str,
) -> None:
    """Record a snapshot run that persisted nothing."""
    audit_log(
        action=AuditAction.SNAPSHOT_GENERATE_FAILED,
        tenant_id=tenant_id,
        resource_type="analytics_snapshot",
        details={"type": snapshot_type, "generated_by": generated_by, "error": error},
        success=False,
    )


def audit_player_data_access(
    action: str,
    tenant_id: int | None,
    record_count: int,
    ip_address: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Record a read of a report that carries player personal data.

    Args:
        action: One of the player data AuditAction constants
        tenant_id: Tenant filter of the report
        record_count: Number of player records returned
        ip_address: Client IP
        details: Extra request context (query parameters)
    """
    audit_log(
        action=action,
        tenant_id=tenant_id,
        resource_type="player",
        details={"record_count": record_count, **(details or {})},
        ip_address=ip_address,
    )
