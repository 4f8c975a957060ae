"""FraudAlert model for the scheduled suspicious-activity scan."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, JSON, String
from sqlalchemy.sql import func

from database import Base


class FraudAlert(Base):
    """One scan's flagged IPs and users, kept until an admin reviews it."""

    __tablename__ = "fraud_alerts"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    suspicious_ips = Column(JSON, nullable=False, default=list)
    suspicious_users = Column(JSON, nullable=False, default=list)
    reviewed = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
