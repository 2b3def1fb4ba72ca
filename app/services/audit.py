from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_audit_logger
from app.models.audit_log import AuditLog

audit_logger = get_audit_logger()


def serialize_for_audit(value: Any) -> Any:
    return jsonable_encoder(
        value,
        custom_encoder={
            Decimal: lambda v: str(v),
            datetime: lambda v: v.isoformat(),
            date: lambda v: v.isoformat(),
        },
    )


def model_snapshot(model: Any, *, include: Iterable[str] | None = None) -> dict[str, Any]:
    if model is None:
        return {}
    wanted = set(include) if include is not None else None
    data: dict[str, Any] = {}
    for column in model.__table__.columns:
        name = column.name
        if wanted is not None and name not in wanted:
            continue
        data[name] = getattr(model, column.key, None)
    return serialize_for_audit(data)


def record_audit_log(
    db: AsyncSession,
    *,
    actor_email: str | None,
    action: str,
    resource_type: str,
    resource_id: str,
    old_value: Any | None = None,
    new_value: Any | None = None,
) -> AuditLog:
    entry = AuditLog(
        actor_email=actor_email,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        old_value=serialize_for_audit(old_value) if old_value is not None else None,
        new_value=serialize_for_audit(new_value) if new_value is not None else None,
    )
    db.add(entry)
    audit_logger.info(
        "%s %s/%s",
        action,
        resource_type,
        resource_id,
        extra={"context": {"actor": actor_email, "old": entry.old_value, "new": entry.new_value}},
    )
    return entry
