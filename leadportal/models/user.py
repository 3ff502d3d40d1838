from sqlalchemy import Column, String, Enum, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from leadportal.models.base import BaseModel
from leadportal.core.enums import UserRole


class User(BaseModel):
    __tablename__ = "users"
    name = Column(String(120), nullable=False)
    email = Column(String(120), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.AFFILIATE_USER)
    affiliate_id = Column(ForeignKey("affiliates.id"), nullable=True, index=True)
    affiliate = relationship("Affiliate", backref="users")
    last_login = Column(DateTime(timezone=True), nullable=True)
