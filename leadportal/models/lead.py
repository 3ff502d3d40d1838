from sqlalchemy import Column, String, Text, Numeric, Enum, ForeignKey
from sqlalchemy.orm import relationship
from leadportal.models.base import BaseModel
from leadportal.core.enums import LeadStatus


class Lead(BaseModel):
    __tablename__ = "leads"
    name = Column(String(120), nullable=False, index=True)
    email = Column(String(120), nullable=False)
    phone = Column(String(40), nullable=False)
    address = Column(String(255))
    loan_amount = Column(Numeric(12, 2), nullable=False)
    notes = Column(Text)
    status = Column(Enum(LeadStatus), nullable=False, default=LeadStatus.NEW, index=True)

    affiliate_id = Column(ForeignKey("affiliates.id"), nullable=True, index=True)
    affiliate = relationship("Affiliate", backref="leads")
    created_by = Column(ForeignKey("users.id"), nullable=False)
    creator = relationship("User", backref="leads")

    status_history = relationship(
        "StatusHistoryItem",
        back_populates="lead",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="StatusHistoryItem.id",
    )
    comments = relationship(
        "Comment",
        back_populates="lead",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Comment.id",
    )
    documents = relationship(
        "Document",
        back_populates="lead",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Document.id",
    )
