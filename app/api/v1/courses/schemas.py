from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import Weekday


class CourseSchedule(BaseModel):
    days: List[Weekday] = Field(default_factory=list)
    time: Optional[str] = Field(None, max_length=50)
    room: Optional[str] = Field(None, max_length=50)


class CourseCreate(BaseModel):
    course_code: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    credit_hours: int = Field(..., description="Between 1 and 6")
    department: Optional[str] = Field(None, max_length=100)
    prerequisites: List[str] = Field(default_factory=list, description="Course codes")
    is_active: bool = True
    schedule: Optional[CourseSchedule] = None


class CourseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    credit_hours: Optional[int] = None
    department: Optional[str] = Field(None, max_length=100)
    prerequisites: Optional[List[str]] = None
    is_active: Optional[bool] = None
    schedule: Optional[CourseSchedule] = None


class CreditHoursUpdate(BaseModel):
    credit_hours: int


class CourseResponse(BaseModel):
    id: UUID
    course_code: str
    title: str
    description: Optional[str] = None
    credit_hours: int
    department: Optional[str] = None
    prerequisites: List[str] = Field(default_factory=list)
    is_active: bool
    schedule: Optional[CourseSchedule] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CourseEnrollmentItem(BaseModel):
    """One student enrolled in a course (course detail page)."""

    student_id: int
    first_name: str
    last_name: str
    email: str
    semester: str
    grade: Optional[float] = None
