from pydantic import BaseModel
from typing import Optional, List
from datetime import date, datetime
from leadportal.core.enums import LeadStatus


class LeadOut(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    address: Optional[str] = None
    loan_amount: float
    notes: Optional[str] = None
    status: LeadStatus
    affiliate_id: Optional[int] = None
    affiliate_name: Optional[str] = None
    created_by: int
    created_at: datetime
    updated_at: Optional[datetime] = None


class StatusHistoryOut(BaseModel):
    id: int
    lead_id: int
    status: LeadStatus
    changed_at: datetime
    changed_by: int
    changed_by_name: Optional[str] = None
    notes: Optional[str] = None


class CommentOut(BaseModel):
    id: int
    lead_id: int
    content: str
    created_at: datetime
    created_by: int
    created_by_name: Optional[str] = None


class DocumentOut(BaseModel):
    id: int
    lead_id: int
    file_name: str
    file_type: str
    file_size: int
    file_url: str
    uploaded_at: datetime


class LeadDetailOut(LeadOut):
    documents: List[DocumentOut] = []
    status_history: List[StatusHistoryOut] = []
    comments: List[CommentOut] = []


class LeadPage(BaseModel):
    items: List[LeadOut]
    total_count: int
    page_count: int
    page: int
    limit: int


class StatusUpdateIn(BaseModel):
    status: LeadStatus
    notes: Optional[str] = None
    expected_status: Optional[LeadStatus] = None


class CommentIn(BaseModel):
    content: str


class ImportRowError(BaseModel):
    row: int
    message: str


class ImportResult(BaseModel):
    success_count: int
    failure_count: int
    errors: List[ImportRowError] = []


class StatusCount(BaseModel):
    status: LeadStatus
    count: int


class TrendPoint(BaseModel):
    date: date
    new: int = 0
    in_review: int = 0
    approved: int = 0
    rejected: int = 0


class LeadMetrics(BaseModel):
    total_leads: int
    leads_by_status: List[StatusCount]
    approval_rate: float
    lead_trends: List[TrendPoint]
    leads_trend: Optional[float] = None
