from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import case, func
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from leadportal.core.auth_utils import check_not_found, is_affiliate
from leadportal.core.enums import LeadStatus
from leadportal.core.errors import Forbidden
from leadportal.core.security import get_current_user, require_admin
from leadportal.db.session import get_db
from leadportal.models.affiliate import Affiliate
from leadportal.models.lead import Lead
from leadportal.schemas.affiliate import AffiliateOut
from leadportal.schemas.auth import Identity

router = APIRouter(prefix="/affiliates", tags=["affiliates"])


def _affiliates_with_counts():
    approved = func.sum(case((Lead.status == LeadStatus.APPROVED, 1), else_=0))
    return (
        select(Affiliate, func.count(Lead.id), approved)
        .outerjoin(Lead, Lead.affiliate_id == Affiliate.id)
        .group_by(Affiliate.id)
    )


def build_affiliate_response(affiliate: Affiliate, lead_count, approved_count) -> AffiliateOut:
    return AffiliateOut(
        id=affiliate.id,
        name=affiliate.name,
        contact_email=affiliate.contact_email,
        lead_count=lead_count or 0,
        approved_count=approved_count or 0,
        created_at=affiliate.created_at,
    )


@router.get("", response_model=List[AffiliateOut])
async def list_affiliates(
    db: AsyncSession = Depends(get_db),
    current_user: Identity = Depends(require_admin)
):
    res = await db.execute(_affiliates_with_counts().order_by(Affiliate.name))
    return [build_affiliate_response(*row) for row in res.all()]


@router.get("/{affiliate_id}", response_model=AffiliateOut)
async def get_affiliate(
    affiliate_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Identity = Depends(get_current_user)
):
    if is_affiliate(current_user) and current_user.affiliate_id != affiliate_id:
        raise Forbidden("Forbidden: You can only view your own affiliate")

    res = await db.execute(_affiliates_with_counts().where(Affiliate.id == affiliate_id))
    row = res.first()
    check_not_found(row, "Affiliate", affiliate_id)
    return build_affiliate_response(*row)
