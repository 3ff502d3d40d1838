from sqlalchemy import Column, String, ForeignKey, Integer
from sqlalchemy.orm import relationship
from leadportal.models.base import BaseModel


class Document(BaseModel):
    __tablename__ = "lead_documents"
    lead_id = Column(ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    lead = relationship("Lead", back_populates="documents")
    file_name = Column(String(255), nullable=False)
    file_type = Column(String(80), nullable=False)
    file_size = Column(Integer, nullable=False)
    storage_key = Column(String(512), nullable=False, unique=True)
