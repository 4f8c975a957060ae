"""ReferralLink model for signup bonus codes."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from database import Base


class ReferralLink(Base):
    """Trackable signup code granting bonus credits."""

    __tablename__ = "referral_links"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    code = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    credits = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    clicks = Column(Integer, nullable=False, default=0)
    signups = Column(Integer, nullable=False, default=0)
    orders = Column(Integer, nullable=False, default=0)
    created_by = Column(String, nullable=True)
    created_by_email = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)
    updated_by = Column(String, nullable=True)
