"""Durable object-store cleanup job model."""

from sqlalchemy import Column, DateTime, Integer, JSON, String
from sqlalchemy.sql import func
import uuid

from database import Base


class FileCleanupJob(Base):
    """Pending deletion of an order's uploaded files."""

    __tablename__ = "file_cleanup_jobs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String, nullable=False, index=True)
    student_id = Column(String, nullable=False, index=True)
    cloudinary_folder = Column(String, nullable=False)
    original_files = Column(JSON, nullable=True)
    status = Column(String, nullable=False, default="pending", index=True)  # pending, completed
    retry_count = Column(Integer, nullable=False, default=0)
    last_error = Column(String, nullable=True)
    last_attempt_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)
