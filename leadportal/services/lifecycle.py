"""Lead status lifecycle.

Statuses move ``new -> in_review -> approved`` with ``new|in_review -> rejected``;
``approved`` and ``rejected`` are terminal. Every change appends exactly one
``StatusHistoryItem`` in the same transaction as the status write, so the
lead's status always equals the status of its latest history item.

The transition table is only enforced when ``ENFORCE_STATUS_TRANSITIONS`` is
on; otherwise a company admin may set any status from any status.
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leadportal.core.auth_utils import check_not_found, check_ownership
from leadportal.core.config import settings
from leadportal.core.enums import LeadStatus, UserRole
from leadportal.core.errors import Conflict, ValidationError
from leadportal.core.metrics import status_transitions
from leadportal.core.security import authorize
from leadportal.models.base import utcnow
from leadportal.models.comment import Comment
from leadportal.models.lead import Lead
from leadportal.models.status_history import StatusHistoryItem

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    LeadStatus.NEW: {LeadStatus.IN_REVIEW, LeadStatus.REJECTED},
    LeadStatus.IN_REVIEW: {LeadStatus.APPROVED, LeadStatus.REJECTED},
    LeadStatus.APPROVED: set(),
    LeadStatus.REJECTED: set(),
}


def can_transition(current: LeadStatus, requested: LeadStatus) -> bool:
    return requested == current or requested in ALLOWED_TRANSITIONS[current]


def parse_status(value) -> LeadStatus:
    try:
        return LeadStatus(value)
    except ValueError:
        allowed = ", ".join(status.value for status in LeadStatus)
        raise ValidationError(f"Invalid status. Must be one of: {allowed}")


async def transition(
    db: AsyncSession,
    lead_id: int,
    new_status,
    acting_user,
    notes: Optional[str] = None,
    expected_status=None,
    enforce: Optional[bool] = None,
) -> Lead:
    authorize(acting_user, [UserRole.COMPANY_ADMIN])
    new_status = parse_status(new_status)
    if enforce is None:
        enforce = settings.ENFORCE_STATUS_TRANSITIONS

    res = await db.execute(select(Lead).where(Lead.id == lead_id).with_for_update())
    lead = res.scalars().first()
    check_not_found(lead, "Lead", lead_id)

    current = lead.status
    if expected_status is not None and current != parse_status(expected_status):
        raise Conflict(f"Lead status is '{current}', expected '{LeadStatus(expected_status)}'")
    if enforce and not can_transition(current, new_status):
        raise Conflict(f"Cannot change lead status from '{current}' to '{new_status}'")

    now = utcnow()
    lead.status = new_status
    lead.updated_at = now
    db.add(
        StatusHistoryItem(
            lead_id=lead.id,
            status=new_status,
            changed_by=int(acting_user.id),
            notes=(notes or "").strip() or None,
            created_at=now,
        )
    )
    await db.commit()

    status_transitions.labels(status=str(new_status)).inc()
    logger.info(f"Lead {lead.id} status {current} -> {new_status} by user {acting_user.id}")
    return lead


async def add_comment(db: AsyncSession, lead_id: int, acting_user, text: Optional[str]) -> Comment:
    content = (text or "").strip()

    res = await db.execute(select(Lead).where(Lead.id == lead_id))
    lead = res.scalars().first()
    check_not_found(lead, "Lead", lead_id)
    check_ownership(lead, acting_user, "Lead")

    if not content:
        raise ValidationError("Comment content is required")

    comment = Comment(lead_id=lead.id, content=content, created_by=int(acting_user.id), created_at=utcnow())
    db.add(comment)
    await db.commit()
    await db.refresh(comment, attribute_names=["author"])
    return comment
