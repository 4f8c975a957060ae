"""Order model for handwriting/transcription requests."""

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class Order(Base):
    """Order owned by a student. Ids are short and only unique per student."""

    __tablename__ = "orders"

    user_id = Column(String, ForeignKey("users.id"), primary_key=True)
    id = Column(String, primary_key=True)
    assignment_title = Column(String, nullable=False)
    order_type = Column(String, nullable=False)  # assignment, practical
    page_count = Column(Integer, nullable=False)
    original_files = Column(JSON, nullable=False, default=list)
    cloudinary_folder = Column(String, nullable=False, default="")
    status = Column(String, nullable=False, default="pending", index=True)  # pending, writing, on the way, delivered

    student_email = Column(String, nullable=True)
    student_name = Column(String, nullable=True)
    student_branch = Column(String, nullable=True)
    student_year = Column(String, nullable=True)

    notes = Column(Text, nullable=True)
    completed_file_url = Column(String, nullable=True)
    turnaround_time_hours = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    updated_by = Column(String, nullable=True)

    user = relationship("User", back_populates="orders")
