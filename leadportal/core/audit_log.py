"""Audit logging utilities for write operations"""
import hashlib
import json
import logging
from typing import Any, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from leadportal.models.audit import Audit
from leadportal.core.enums import AuditAction
from leadportal.core.metrics import audit_logs_created

logger = logging.getLogger(__name__)


def payload_hash(payload: Any) -> str:
    if hasattr(payload, "model_dump"):
        payload = payload.model_dump(exclude_unset=True)
    elif not isinstance(payload, dict):
        payload = {}
    payload_str = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(payload_str.encode()).hexdigest()


async def log_audit(
    db: AsyncSession,
    user_id: int,
    action: AuditAction,
    payload: Optional[dict] = None,
    resource_id: Optional[int] = None,
) -> None:

    try:
        audit_record = Audit(
            user_id=int(user_id),
            action=AuditAction(action),
            resource_id=str(resource_id) if resource_id is not None else None,
            payload_hash=payload_hash(payload or {}),
        )
        db.add(audit_record)
        await db.commit()
        audit_logs_created.labels(action=str(action)).inc()

    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Audit logging failed for action {action}: {e}", exc_info=True)


async def log_login(
    db: AsyncSession,
    user_id: int,
    email: str
) -> None:
    await log_audit(db, user_id, AuditAction.LOGIN, {"email": email})
