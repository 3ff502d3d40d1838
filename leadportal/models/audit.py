from sqlalchemy import Column, String, Enum, ForeignKey, Index
from sqlalchemy.orm import relationship
from leadportal.models.base import BaseModel
from leadportal.core.enums import AuditAction


class Audit(BaseModel):
    """One successful write by one user; the payload itself is only kept as a hash."""

    __tablename__ = "audits"
    __table_args__ = (Index("ix_audits_resource", "resource_id", "created_at"),)

    user_id = Column(ForeignKey("users.id"), nullable=False, index=True)
    user = relationship("User", backref="audit_logs")
    action = Column(Enum(AuditAction), nullable=False)
    resource_id = Column(String(64), nullable=True)
    payload_hash = Column(String(64), nullable=False)
