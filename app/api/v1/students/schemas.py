from datetime import date, datetime
from typing import List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class Address(BaseModel):
    street: str = ""
    city: str = ""


class StudentCreate(BaseModel):
    """Do NOT send student_id (assigned in backend from the studentId sequence)."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    department: str = Field(..., min_length=1, max_length=100)
    enrollment_date: Optional[date] = None  # defaults to today
    is_active: bool = True
    address: Address = Field(default_factory=Address)


class StudentUpdate(BaseModel):
    # Accepted for form round-trips but never applied: student_id is immutable.
    student_id: Optional[int] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    department: Optional[str] = Field(None, min_length=1, max_length=100)
    enrollment_date: Optional[date] = None
    is_active: Optional[bool] = None
    address: Optional[Address] = None


class EnrollmentResponse(BaseModel):
    course_id: UUID
    course_code: Optional[str] = None
    title: Optional[str] = None
    semester: str
    grade: Optional[float] = None
    credit_hours: int


class StudentResponse(BaseModel):
    student_id: int
    first_name: str
    last_name: str
    email: str
    department: str
    enrollment_date: date
    is_active: bool
    address: Address
    courses: List[EnrollmentResponse] = Field(default_factory=list)
    gpa: float
    created_at: datetime


class EnrollRequest(BaseModel):
    course_id: UUID
    semester: str = Field(..., min_length=1, max_length=50)


class GradeUpdate(BaseModel):
    # Raw form input; anything that does not parse as a number clears the grade.
    grade: Union[float, str, None] = None
