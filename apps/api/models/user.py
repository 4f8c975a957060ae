"""User model."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class User(Base):
    """Student or admin account keyed by the identity provider subject."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False, index=True)
    name = Column(String, nullable=True)

    # Profile, used for onboarding completeness only
    whatsapp_no = Column(String, nullable=True)
    section = Column(String, nullable=True)
    year = Column(String, nullable=True)
    sem = Column(String, nullable=True)
    branch = Column(String, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    credits_remaining = Column(Integer, nullable=True)
    total_orders = Column(Integer, nullable=True)
    total_pages = Column(Integer, nullable=True)
    referral_code = Column(String, nullable=True, index=True)

    # Legacy field names; a NULL current field is filled from these on read
    page_quota = Column(Integer, nullable=True)
    total_orders_placed = Column(Integer, nullable=True)
    total_pages_used = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_order_at = Column(DateTime(timezone=True), nullable=True)
    last_credit_rollover = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    orders = relationship("Order", back_populates="user", cascade="all, delete-orphan")
