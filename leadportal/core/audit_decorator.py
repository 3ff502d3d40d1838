import logging
from functools import wraps
from typing import Callable
from leadportal.core.audit_log import log_audit
from leadportal.core.enums import AuditAction

logger = logging.getLogger(__name__)

PAYLOAD_KEYS = ("payload", "data", "body")


def audit_log(action: AuditAction) -> Callable:
    """Record an audit entry once the wrapped route handler has succeeded."""

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            result = await func(*args, **kwargs)

            db = kwargs.get("db")
            current_user = kwargs.get("current_user")

            if not db or not current_user:
                return result

            payload = next((kwargs[key] for key in PAYLOAD_KEYS if key in kwargs), None)
            resource_id = kwargs.get("lead_id")
            if resource_id is None:
                resource_id = getattr(result, "id", None)

            await log_audit(db, current_user.id, action, payload, resource_id=resource_id)
            return result

        return wrapper
    return decorator
