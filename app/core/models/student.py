"""
Student record. Enrollments are embedded in `courses` as a JSON list, in enrollment order:

    {"course_id": "<uuid>", "grade": 91.5 | null, "semester": "Fall 2024", "credit_hours": 3}

`course_id` is a weak reference: a deleted course may still appear until its cascade
has run, so readers filter dangling entries. `gpa` is derived from `courses` and is
written only by the student service.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Float, Integer, String, Uuid

from app.core.models.course import JSONType
from app.db.session import Base


def _empty_address() -> dict:
    return {"street": "", "city": ""}


class Student(Base):
    __tablename__ = "students"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(Integer, nullable=False, unique=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    department = Column(String(100), nullable=False)
    enrollment_date = Column(Date, nullable=False, default=date.today)
    is_active = Column(Boolean, nullable=False, default=True)
    address = Column(JSONType, nullable=False, default=_empty_address)
    courses = Column(JSONType, nullable=False, default=list)
    gpa = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
