"""Course catalog entries. Enrollments reference courses by id from inside the student record."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB

from app.db.session import Base

JSONType = JSON().with_variant(JSONB, "postgresql")

MIN_CREDIT_HOURS = 1
MAX_CREDIT_HOURS = 6


class Course(Base):
    __tablename__ = "courses"
    __table_args__ = (
        CheckConstraint(
            f"credit_hours BETWEEN {MIN_CREDIT_HOURS} AND {MAX_CREDIT_HOURS}",
            name="ck_course_credit_hours",
        ),
        Index("ix_course_department_credit_hours", "department", "credit_hours"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    course_code = Column(String(50), nullable=False, unique=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    credit_hours = Column(Integer, nullable=False)
    department = Column(String(100), nullable=True)
    prerequisites = Column(JSONType, nullable=False, default=list)  # ["CS101", "MATH120"]
    is_active = Column(Boolean, nullable=False, default=True)
    schedule = Column(JSONType, nullable=True)  # {days: ["Monday", ...], time, room}
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
