from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class AffiliateOut(BaseModel):
    id: int
    name: str
    contact_email: Optional[str] = None
    lead_count: int = 0
    approved_count: int = 0
    created_at: datetime
