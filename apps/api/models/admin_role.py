"""Admin role marker model."""

from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from database import Base


class AdminRole(Base):
    """Presence of a row grants admin privileges to the user id."""

    __tablename__ = "admin_roles"

    user_id = Column(String, primary_key=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
