from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text
from sqlalchemy.sql import func
from invoicely.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(128), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=True)  # NULL for identity-provider-only accounts
    idp_subject = Column(String(255), unique=True, nullable=True)  # e.g. "auth0|abc123"
    picture = Column(String(1024), nullable=True)
    # Document header shown on rendered invoices
    company_name = Column(String(255), nullable=True)
    logo = Column(Text, nullable=True)  # data URL
    signature = Column(Text, nullable=True)  # data URL
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
