from typing import Callable, Optional
from leadportal.models.comment import Comment
from leadportal.models.document import Document
from leadportal.models.lead import Lead
from leadportal.models.status_history import StatusHistoryItem
from leadportal.schemas.lead import (
    CommentOut,
    DocumentOut,
    LeadDetailOut,
    LeadOut,
    StatusHistoryOut,
)


def _loaded(obj, attr: str):
    # Relationships are only read when eagerly loaded; lazy loads are not allowed under asyncio
    return obj.__dict__.get(attr)


def build_lead_response(lead: Lead) -> LeadOut:
    affiliate = _loaded(lead, "affiliate")
    return LeadOut(
        id=lead.id,
        name=lead.name,
        email=lead.email,
        phone=lead.phone,
        address=lead.address,
        loan_amount=float(lead.loan_amount),
        notes=lead.notes,
        status=lead.status,
        affiliate_id=lead.affiliate_id,
        affiliate_name=affiliate.name if affiliate else None,
        created_by=lead.created_by,
        created_at=lead.created_at,
        updated_at=lead.updated_at,
    )


def build_history_response(item: StatusHistoryItem) -> StatusHistoryOut:
    actor = _loaded(item, "actor")
    return StatusHistoryOut(
        id=item.id,
        lead_id=item.lead_id,
        status=item.status,
        changed_at=item.created_at,
        changed_by=item.changed_by,
        changed_by_name=actor.name if actor else None,
        notes=item.notes,
    )


def build_comment_response(comment: Comment) -> CommentOut:
    author = _loaded(comment, "author")
    return CommentOut(
        id=comment.id,
        lead_id=comment.lead_id,
        content=comment.content,
        created_at=comment.created_at,
        created_by=comment.created_by,
        created_by_name=author.name if author else None,
    )


def build_document_response(document: Document, url: str) -> DocumentOut:
    return DocumentOut(
        id=document.id,
        lead_id=document.lead_id,
        file_name=document.file_name,
        file_type=document.file_type,
        file_size=document.file_size,
        file_url=url,
        uploaded_at=document.created_at,
    )


def build_lead_detail_response(
    lead: Lead,
    url_for: Optional[Callable[[Document], str]] = None,
) -> LeadDetailOut:
    base = build_lead_response(lead).model_dump()
    documents = _loaded(lead, "documents") or []
    return LeadDetailOut(
        **base,
        documents=[build_document_response(doc, url_for(doc) if url_for else "") for doc in documents],
        status_history=[build_history_response(item) for item in _loaded(lead, "status_history") or []],
        comments=[build_comment_response(comment) for comment in _loaded(lead, "comments") or []],
    )


def build_lead_response_list(leads: list) -> list:
    return [build_lead_response(lead) for lead in leads]
