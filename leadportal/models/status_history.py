from sqlalchemy import Column, Text, Enum, ForeignKey, Index
from sqlalchemy.orm import relationship
from leadportal.models.base import BaseModel
from leadportal.core.enums import LeadStatus


class StatusHistoryItem(BaseModel):
    """Append-only record of a lead status change."""

    __tablename__ = "lead_status_history"
    __table_args__ = (Index("ix_lead_status_history_lead", "lead_id", "created_at"),)

    lead_id = Column(ForeignKey("leads.id", ondelete="CASCADE"), nullable=False)
    lead = relationship("Lead", back_populates="status_history")
    status = Column(Enum(LeadStatus), nullable=False)
    changed_by = Column(ForeignKey("users.id"), nullable=False)
    actor = relationship("User")
    notes = Column(Text)
