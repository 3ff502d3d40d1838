from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from leadportal.core.audit_decorator import audit_log
from leadportal.core.config import settings
from leadportal.core.enums import AuditAction, LeadStatus
from leadportal.core.errors import NotFound, StorageError, ValidationError
from leadportal.core.rate_limit import check_rate_limit
from leadportal.core.response_builders import (
    build_comment_response,
    build_document_response,
    build_lead_detail_response,
)
from leadportal.core.security import get_current_user, require_admin
from leadportal.core.validators import validate_lead_fields
from leadportal.db.session import get_db
from leadportal.models.base import utcnow
from leadportal.schemas.auth import Identity
from leadportal.schemas.lead import (
    CommentIn,
    CommentOut,
    DocumentOut,
    ImportResult,
    LeadDetailOut,
    LeadMetrics,
    LeadPage,
    StatusUpdateIn,
)
from leadportal.services import bulk, documents, leads, lifecycle, stats
from leadportal.services.storage import DocumentStore, get_document_store

router = APIRouter(prefix="/leads", tags=["leads"])


def lead_filters(
    status: Optional[List[LeadStatus]] = Query(None),
    status_list: Optional[List[LeadStatus]] = Query(None, alias="status[]"),
    search: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    affiliate_id: Optional[int] = Query(None, alias="affiliateId"),
) -> leads.LeadFilters:
    if start_date and end_date and start_date > end_date:
        raise ValidationError("startDate must be on or before endDate")
    return leads.LeadFilters(
        statuses=(status or []) + (status_list or []),
        search=search,
        start_date=start_date,
        end_date=end_date,
        affiliate_id=affiliate_id,
    )


async def lead_detail(db: AsyncSession, store: DocumentStore, lead_id: int, current_user) -> LeadDetailOut:
    lead = await leads.get_lead(db, lead_id, current_user, detail=True)
    urls = {
        doc.id: await documents.signed_url(store, doc, settings.DOCUMENT_URL_TTL)
        for doc in lead.documents
    }
    return build_lead_detail_response(lead, url_for=lambda doc: urls[doc.id])


@router.get("", response_model=LeadPage)
async def list_leads(
    page: int = Query(1),
    limit: int = Query(leads.DEFAULT_PAGE_SIZE),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    filters: leads.LeadFilters = Depends(lead_filters),
    db: AsyncSession = Depends(get_db),
    current_user: Identity = Depends(get_current_user)
):
    return await leads.list_leads(db, current_user, filters, page, limit, sort_by, sort_order)


@router.post("", response_model=LeadDetailOut)
@audit_log(AuditAction.CREATE_LEAD)
async def create_lead(
    name: str = Form(""),
    email: str = Form(""),
    phone: str = Form(""),
    address: Optional[str] = Form(None),
    loan_amount: str = Form("", alias="loanAmount"),
    notes: Optional[str] = Form(None),
    affiliate_id: Optional[int] = Form(None, alias="affiliateId"),
    files: Optional[List[UploadFile]] = File(None, alias="documents"),
    db: AsyncSession = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
    current_user: Identity = Depends(get_current_user)
):
    await check_rate_limit(current_user.id)

    cleaned, problems = validate_lead_fields({
        "name": name,
        "email": email,
        "phone": phone,
        "address": address,
        "loan_amount": loan_amount,
        "notes": notes,
    })
    if problems:
        raise ValidationError("; ".join(problems))

    # every document is checked before anything is written
    uploads = [await documents.read_upload(file) for file in files or []]
    target_affiliate = await leads.resolve_affiliate_id(db, current_user, affiliate_id)

    stored = []
    try:
        lead = await leads.create_lead(db, current_user, cleaned, affiliate_id=target_affiliate)
        stored = await documents.store_documents(db, store, lead.id, uploads)
        await db.commit()
    except StorageError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        await documents.discard_objects(store, [doc.storage_key for doc in stored])
        raise StorageError("Failed to save lead") from e

    return await lead_detail(db, store, lead.id, current_user)


@router.get("/template")
async def download_template(current_user: Identity = Depends(get_current_user)):
    return Response(
        content=bulk.template_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="lead-template.csv"'},
    )


@router.get("/export")
@audit_log(AuditAction.EXPORT_LEADS)
async def export_leads(
    filters: leads.LeadFilters = Depends(lead_filters),
    db: AsyncSession = Depends(get_db),
    current_user: Identity = Depends(get_current_user)
):
    content = await bulk.export_csv(db, current_user, filters)
    filename = f"leads-export-{utcnow().date().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/metrics", response_model=LeadMetrics)
async def lead_metrics(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    current_user: Identity = Depends(get_current_user)
):
    return await stats.lead_metrics(db, current_user, start_date, end_date)


@router.post("/bulk", response_model=ImportResult)
@audit_log(AuditAction.BULK_IMPORT)
async def bulk_upload(
    file: UploadFile = File(...),
    affiliate_id: Optional[int] = Form(None, alias="affiliateId"),
    db: AsyncSession = Depends(get_db),
    current_user: Identity = Depends(get_current_user)
):
    await check_rate_limit(current_user.id)

    bulk.check_import_file(file.filename, file.size or 0)
    content = await file.read()
    target_affiliate = await leads.resolve_affiliate_id(db, current_user, affiliate_id)
    return await bulk.import_csv(db, current_user, file.filename, content, affiliate_id=target_affiliate)


@router.get("/{lead_id}", response_model=LeadDetailOut)
async def get_lead(
    lead_id: int,
    db: AsyncSession = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
    current_user: Identity = Depends(get_current_user)
):
    return await lead_detail(db, store, lead_id, current_user)


@router.put("/{lead_id}/status", response_model=LeadDetailOut)
@audit_log(AuditAction.UPDATE_LEAD_STATUS)
async def update_status(
    lead_id: int,
    payload: StatusUpdateIn,
    db: AsyncSession = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
    current_user: Identity = Depends(require_admin)
):
    await check_rate_limit(current_user.id)

    await lifecycle.transition(
        db,
        lead_id,
        payload.status,
        current_user,
        notes=payload.notes,
        expected_status=payload.expected_status,
    )
    return await lead_detail(db, store, lead_id, current_user)


@router.post("/{lead_id}/comments", response_model=CommentOut)
@audit_log(AuditAction.ADD_COMMENT)
async def add_comment(
    lead_id: int,
    payload: CommentIn,
    db: AsyncSession = Depends(get_db),
    current_user: Identity = Depends(get_current_user)
):
    await check_rate_limit(current_user.id)

    comment = await lifecycle.add_comment(db, lead_id, current_user, payload.content)
    return build_comment_response(comment)


@router.post("/{lead_id}/documents", response_model=DocumentOut)
@audit_log(AuditAction.UPLOAD_DOCUMENT)
async def upload_document(
    lead_id: int,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
    current_user: Identity = Depends(get_current_user)
):
    await check_rate_limit(current_user.id)

    lead = await leads.get_lead(db, lead_id, current_user)
    upload = await documents.read_upload(file)
    document = await documents.upload_document(db, store, lead.id, upload)
    url = await documents.signed_url(store, document, settings.DOCUMENT_UPLOAD_URL_TTL)
    return build_document_response(document, url)


@router.get("/{lead_id}/documents/download")
async def download_documents(
    lead_id: int,
    db: AsyncSession = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
    current_user: Identity = Depends(get_current_user)
):
    lead = await leads.get_lead(db, lead_id, current_user, detail=True)
    if not lead.documents:
        raise NotFound("No documents found for this lead")

    content = await documents.build_documents_zip(store, lead.documents)
    return Response(
        content=content,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="lead-{lead.id}-documents.zip"'},
    )
