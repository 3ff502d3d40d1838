from sqlalchemy import Column, String
from leadportal.models.base import BaseModel


class Affiliate(BaseModel):
    __tablename__ = "affiliates"
    name = Column(String(120), nullable=False, unique=True)
    contact_email = Column(String(120))
