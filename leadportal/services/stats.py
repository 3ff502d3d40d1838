from collections import Counter, defaultdict
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leadportal.core.enums import LeadStatus
from leadportal.core.errors import ValidationError
from leadportal.models.lead import Lead
from leadportal.schemas.lead import LeadMetrics, StatusCount, TrendPoint
from leadportal.services.leads import LeadFilters, apply_filters


async def _count(db: AsyncSession, current_user, filters: LeadFilters) -> int:
    q = apply_filters(select(Lead.id), filters, current_user).subquery()
    return (await db.execute(select(func.count()).select_from(q))).scalar_one()


async def lead_metrics(
    db: AsyncSession,
    current_user,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> LeadMetrics:
    """Dashboard figures for the leads visible to ``current_user``."""
    if start_date and end_date and start_date > end_date:
        raise ValidationError("startDate must be on or before endDate")

    filters = LeadFilters(start_date=start_date, end_date=end_date)
    q = apply_filters(select(Lead.created_at, Lead.status), filters, current_user)
    rows = (await db.execute(q)).all()

    by_status = Counter(LeadStatus(status) for _, status in rows)
    per_day = defaultdict(Counter)
    for created_at, status in rows:
        per_day[created_at.date()][LeadStatus(status).value] += 1

    total = len(rows)
    trends = [TrendPoint(date=day, **per_day[day]) for day in sorted(per_day)]

    leads_trend = None
    if start_date and end_date:
        window = (end_date - start_date).days + 1
        previous = LeadFilters(
            start_date=start_date - timedelta(days=window),
            end_date=start_date - timedelta(days=1),
        )
        previous_total = await _count(db, current_user, previous)
        if previous_total:
            leads_trend = round((total - previous_total) / previous_total * 100, 1)

    return LeadMetrics(
        total_leads=total,
        leads_by_status=[StatusCount(status=status, count=by_status[status]) for status in LeadStatus],
        approval_rate=round(by_status[LeadStatus.APPROVED] / total, 4) if total else 0.0,
        lead_trends=trends,
        leads_trend=leads_trend,
    )
