from sqlalchemy import Column, Text, ForeignKey
from sqlalchemy.orm import relationship
from leadportal.models.base import BaseModel


class Comment(BaseModel):
    __tablename__ = "lead_comments"
    lead_id = Column(ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    lead = relationship("Lead", back_populates="comments")
    content = Column(Text, nullable=False)
    created_by = Column(ForeignKey("users.id"), nullable=False)
    author = relationship("User")
