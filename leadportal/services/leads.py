"""Lead persistence: creation, scoped lookup and filtered/paginated listing."""
import logging
import math
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leadportal.core.auth_utils import check_not_found, check_ownership, filter_by_affiliate, is_affiliate
from leadportal.core.enums import LeadStatus, SortOrder
from leadportal.core.errors import Forbidden, ValidationError
from leadportal.core.response_builders import build_lead_response_list
from leadportal.models.base import utcnow
from leadportal.models.affiliate import Affiliate
from leadportal.models.comment import Comment
from leadportal.models.lead import Lead
from leadportal.models.status_history import StatusHistoryItem
from leadportal.schemas.lead import LeadPage

logger = logging.getLogger(__name__)

ALLOWED_PAGE_SIZES = (10, 25, 50)
DEFAULT_PAGE_SIZE = 10

SORT_FIELDS = {
    "name": Lead.name,
    "status": Lead.status,
    "createdAt": Lead.created_at,
    "created_at": Lead.created_at,
    "updatedAt": Lead.updated_at,
    "updated_at": Lead.updated_at,
}
DEFAULT_SORT_FIELD = "createdAt"


class LeadFilters(BaseModel):
    statuses: List[LeadStatus] = []
    search: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    affiliate_id: Optional[int] = None


def day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def apply_filters(query, filters: LeadFilters, current_user):
    """AND-combine the listing filters and the caller's affiliate scope onto ``query``."""
    query = filter_by_affiliate(query, Lead, current_user)

    if filters.statuses:
        query = query.where(Lead.status.in_(set(filters.statuses)))

    search = (filters.search or "").strip()
    if search:
        query = query.where(
            or_(
                Lead.name.icontains(search, autoescape=True),
                Lead.email.icontains(search, autoescape=True),
                Lead.phone.icontains(search, autoescape=True),
            )
        )

    if filters.start_date:
        query = query.where(Lead.created_at >= day_start(filters.start_date))
    if filters.end_date:
        # end date is inclusive: everything before the start of the following day
        query = query.where(Lead.created_at < day_start(filters.end_date + timedelta(days=1)))

    if filters.affiliate_id is not None and not is_affiliate(current_user):
        query = query.where(Lead.affiliate_id == filters.affiliate_id)

    return query


def order_by_clause(sort_by: Optional[str], sort_order: Optional[str]) -> list:
    field = sort_by or DEFAULT_SORT_FIELD
    if field not in SORT_FIELDS:
        raise ValidationError("Invalid sort field. Must be one of: name, status, createdAt, updatedAt")
    try:
        direction = SortOrder((sort_order or SortOrder.DESC).lower())
    except ValueError:
        raise ValidationError("Invalid sort order. Must be 'asc' or 'desc'")

    column = SORT_FIELDS[field]
    if direction == SortOrder.ASC:
        return [column.asc(), Lead.id.asc()]
    return [column.desc(), Lead.id.desc()]


async def list_leads(
    db: AsyncSession,
    current_user,
    filters: LeadFilters,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> LeadPage:
    if page < 1:
        raise ValidationError("Page must be 1 or greater")
    if limit not in ALLOWED_PAGE_SIZES:
        raise ValidationError(f"Limit must be one of {', '.join(str(size) for size in ALLOWED_PAGE_SIZES)}")
    ordering = order_by_clause(sort_by, sort_order)

    count_query = apply_filters(select(Lead.id), filters, current_user).subquery()
    total = (await db.execute(select(func.count()).select_from(count_query))).scalar_one()

    q = apply_filters(select(Lead).options(selectinload(Lead.affiliate)), filters, current_user)
    q = q.order_by(*ordering).limit(limit).offset((page - 1) * limit)
    res = await db.execute(q)
    leads = res.scalars().all()

    return LeadPage(
        items=build_lead_response_list(leads),
        total_count=total,
        page_count=math.ceil(total / limit),
        page=page,
        limit=limit,
    )


async def all_filtered_leads(db: AsyncSession, current_user, filters: LeadFilters) -> list:
    q = apply_filters(select(Lead).options(selectinload(Lead.affiliate)), filters, current_user)
    res = await db.execute(q.order_by(*order_by_clause(None, None)))
    return list(res.scalars().all())


async def get_lead(db: AsyncSession, lead_id: int, current_user, detail: bool = False) -> Lead:
    q = select(Lead).where(Lead.id == lead_id).options(selectinload(Lead.affiliate))
    if detail:
        q = q.options(
            selectinload(Lead.documents),
            selectinload(Lead.status_history).selectinload(StatusHistoryItem.actor),
            selectinload(Lead.comments).selectinload(Comment.author),
        )
    res = await db.execute(q.execution_options(populate_existing=True))
    lead = res.scalars().first()
    check_not_found(lead, "Lead", lead_id)
    check_ownership(lead, current_user, "Lead")
    return lead


async def resolve_affiliate_id(db: AsyncSession, current_user, requested: Optional[int]) -> Optional[int]:
    """Affiliates always submit for their own affiliate; company admins may pick one."""
    if is_affiliate(current_user):
        if current_user.affiliate_id is None:
            raise Forbidden("Your account is not linked to an affiliate")
        return current_user.affiliate_id
    if requested is not None and await db.get(Affiliate, requested) is None:
        raise ValidationError("Affiliate not found")
    return requested


async def create_lead(
    db: AsyncSession,
    current_user,
    fields: dict,
    affiliate_id: Optional[int] = None,
) -> Lead:
    """Add a new lead plus its initial ``new`` history entry; the caller commits."""
    now = utcnow()
    lead = Lead(
        name=fields["name"],
        email=fields["email"],
        phone=fields["phone"],
        address=fields.get("address"),
        loan_amount=fields["loan_amount"],
        notes=fields.get("notes"),
        status=LeadStatus.NEW,
        affiliate_id=affiliate_id,
        created_by=int(current_user.id),
        created_at=now,
        updated_at=now,
    )
    db.add(lead)
    await db.flush()

    db.add(
        StatusHistoryItem(
            lead_id=lead.id,
            status=LeadStatus.NEW,
            changed_by=int(current_user.id),
            notes="Lead created",
            created_at=now,
        )
    )
    await db.flush()
    logger.debug(f"Lead {lead.id} created by user {current_user.id}")
    return lead
