import logging
from datetime import date
from typing import Any, Dict, List, Optional, Set
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateKeyError, NotFoundError, StorageUnavailableError
from app.core.models import Course, Student
from app.core.sequence import STUDENT_ID_SEQUENCE, next_value
from app.core.validators import required_text
from app.api.v1.courses import service as course_service
from app.api.v1.courses.schemas import CourseResponse

from . import ledger
from .schemas import Address, EnrollmentResponse, StudentCreate, StudentResponse, StudentUpdate

logger = logging.getLogger(__name__)


async def _course_index(db: AsyncSession, course_ids: Set[str]) -> Dict[str, Course]:
    if not course_ids:
        return {}
    result = await db.execute(select(Course).where(Course.id.in_([UUID(c) for c in course_ids])))
    return {str(c.id): c for c in result.scalars().all()}


async def _to_response(db: AsyncSession, s: Student) -> StudentResponse:
    """Build the response, leaving out enrollments whose course has been deleted."""
    enrollments = s.courses or []
    courses = await _course_index(db, {e["course_id"] for e in enrollments})
    live = ledger.filter_live(enrollments, set(courses))
    return StudentResponse(
        student_id=s.student_id,
        first_name=s.first_name,
        last_name=s.last_name,
        email=s.email,
        department=s.department,
        enrollment_date=s.enrollment_date,
        is_active=s.is_active,
        address=Address(**(s.address or {})),
        courses=[
            EnrollmentResponse(
                course_id=e["course_id"],
                course_code=courses[e["course_id"]].course_code,
                title=courses[e["course_id"]].title,
                semester=e.get("semester") or "",
                grade=e.get("grade"),
                credit_hours=e.get("credit_hours") or 0,
            )
            for e in live
        ],
        gpa=s.gpa,
        created_at=s.created_at,
    )


async def _get_student_row(db: AsyncSession, student_id: int) -> Student:
    result = await db.execute(select(Student).where(Student.student_id == student_id))
    student = result.scalar_one_or_none()
    if not student:
        raise NotFoundError("Student not found")
    return student


async def _email_taken(db: AsyncSession, email: str, exclude_student_id: Optional[int] = None) -> bool:
    stmt = select(Student.id).where(Student.email == email)
    if exclude_student_id is not None:
        stmt = stmt.where(Student.student_id != exclude_student_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none() is not None


async def _save(db: AsyncSession, student: Student) -> StudentResponse:
    try:
        await db.commit()
        await db.refresh(student)
    except IntegrityError:
        await db.rollback()
        raise DuplicateKeyError("A student with this email or student ID already exists")
    except SQLAlchemyError as e:
        await db.rollback()
        raise StorageUnavailableError("Could not save student") from e
    return await _to_response(db, student)


async def create_student(db: AsyncSession, payload: StudentCreate) -> StudentResponse:
    first_name = required_text(payload.first_name, "first_name")
    last_name = required_text(payload.last_name, "last_name")
    department = required_text(payload.department, "department")
    email = payload.email.lower()
    if await _email_taken(db, email):
        raise DuplicateKeyError("A student with this email already exists")
    # Only brand-new records draw from the sequence; failures here assign nothing.
    student_id = await next_value(db, STUDENT_ID_SEQUENCE)
    obj = Student(
        student_id=student_id,
        first_name=first_name,
        last_name=last_name,
        email=email,
        department=department,
        enrollment_date=payload.enrollment_date or date.today(),
        is_active=payload.is_active,
        address=payload.address.model_dump(),
        courses=[],
        gpa=0.0,
    )
    db.add(obj)
    response = await _save(db, obj)
    logger.info("Created student %d", student_id)
    return response


async def list_students(db: AsyncSession) -> List[StudentResponse]:
    result = await db.execute(select(Student).order_by(Student.student_id))
    return [await _to_response(db, s) for s in result.scalars().all()]


async def get_student(db: AsyncSession, student_id: int) -> StudentResponse:
    return await _to_response(db, await _get_student_row(db, student_id))


async def update_student(db: AsyncSession, student_id: int, payload: StudentUpdate) -> StudentResponse:
    """Apply profile edits. `payload.student_id` is ignored: the identifier never changes."""
    student = await _get_student_row(db, student_id)
    # Validate text fields before any attribute is set on the row.
    text_fields = {
        name: required_text(getattr(payload, name), name)
        for name in ("first_name", "last_name", "department")
        if getattr(payload, name) is not None
    }
    if payload.email is not None:
        email = payload.email.lower()
        if await _email_taken(db, email, exclude_student_id=student_id):
            raise DuplicateKeyError("A student with this email already exists")
        student.email = email
    for name, value in text_fields.items():
        setattr(student, name, value)
    if payload.enrollment_date is not None:
        student.enrollment_date = payload.enrollment_date
    if payload.is_active is not None:
        student.is_active = payload.is_active
    if payload.address is not None:
        student.address = payload.address.model_dump()
    return await _save(db, student)


async def delete_student(db: AsyncSession, student_id: int) -> None:
    student = await _get_student_row(db, student_id)
    try:
        await db.delete(student)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StorageUnavailableError("Could not delete student") from e
    logger.info("Deleted student %d", student_id)


async def _apply_enrollments(db: AsyncSession, student: Student, enrollments: List[Dict[str, Any]]) -> StudentResponse:
    # Load, mutate, write back: concurrent edits to the same student are last-write-wins.
    student.courses = enrollments
    # Dangling course references stay stored but never count towards the GPA.
    student.gpa = await course_service.live_gpa(db, enrollments)
    return await _save(db, student)


async def enroll_in_course(db: AsyncSession, student_id: int, course_id: UUID, semester: str) -> StudentResponse:
    student = await _get_student_row(db, student_id)
    course = await course_service.get_course_by_id(db, course_id)
    enrollments = ledger.enroll(student.courses or [], course, semester)
    response = await _apply_enrollments(db, student, enrollments)
    logger.info("Student %d enrolled in %s for %s", student_id, course.course_code, semester.strip())
    return response


async def drop_course(db: AsyncSession, student_id: int, course_id: UUID) -> StudentResponse:
    student = await _get_student_row(db, student_id)
    enrollments = ledger.drop(student.courses or [], course_id)
    response = await _apply_enrollments(db, student, enrollments)
    logger.info("Student %d dropped course %s", student_id, course_id)
    return response


async def record_grade(db: AsyncSession, student_id: int, course_id: UUID, raw_grade: Any) -> StudentResponse:
    student = await _get_student_row(db, student_id)
    grade = ledger.parse_grade(raw_grade)
    enrollments = ledger.set_grade(student.courses or [], course_id, grade)
    response = await _apply_enrollments(db, student, enrollments)
    logger.info("Student %d grade for course %s set to %s", student_id, course_id, grade)
    return response


async def available_courses(db: AsyncSession, student_id: int) -> List[CourseResponse]:
    """Catalog courses the student holds no enrollment for, in any semester."""
    student = await _get_student_row(db, student_id)
    enrolled = {e.get("course_id") for e in student.courses or []}
    return [c for c in await course_service.list_courses(db) if str(c.id) not in enrolled]
