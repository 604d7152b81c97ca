import logging
from typing import Any, Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateKeyError, NotFoundError, StorageUnavailableError, ValidationError
from app.core.gpa import compute_gpa
from app.core.models import Course, Student
from app.core.models.course import MAX_CREDIT_HOURS, MIN_CREDIT_HOURS
from app.core.validators import required_text
from app.api.v1.students import ledger

from .schemas import CourseCreate, CourseEnrollmentItem, CourseResponse, CourseSchedule, CourseUpdate

logger = logging.getLogger(__name__)


def _to_response(c: Course) -> CourseResponse:
    return CourseResponse(
        id=c.id,
        course_code=c.course_code,
        title=c.title,
        description=c.description,
        credit_hours=c.credit_hours,
        department=c.department,
        prerequisites=list(c.prerequisites or []),
        is_active=c.is_active,
        schedule=CourseSchedule(**c.schedule) if c.schedule else None,
        created_at=c.created_at,
    )


def _validate_credit_hours(credit_hours: int) -> None:
    if not (MIN_CREDIT_HOURS <= credit_hours <= MAX_CREDIT_HOURS):
        raise ValidationError(
            f"Credit hours must be between {MIN_CREDIT_HOURS} and {MAX_CREDIT_HOURS}",
            field="credit_hours",
        )


def _normalize_prerequisites(codes: List[str]) -> List[str]:
    """Upper-case, strip and de-duplicate course codes, keeping first-seen order."""
    seen: List[str] = []
    for code in codes:
        code = code.strip().upper()
        if code and code not in seen:
            seen.append(code)
    return seen


def _schedule_to_json(schedule: Optional[CourseSchedule]) -> Optional[dict]:
    if schedule is None:
        return None
    data = schedule.model_dump(mode="json")
    # days is a set: keep first occurrence only
    data["days"] = list(dict.fromkeys(data["days"]))
    return data


async def _get_course_row(db: AsyncSession, course_id: UUID) -> Course:
    result = await db.execute(select(Course).where(Course.id == course_id))
    course = result.scalar_one_or_none()
    if not course:
        raise NotFoundError("Course not found")
    return course


async def _find_by_code(db: AsyncSession, course_code: str) -> Optional[Course]:
    result = await db.execute(select(Course).where(Course.course_code == course_code))
    return result.scalar_one_or_none()


async def _students_referencing(db: AsyncSession, course_id: UUID) -> List[Student]:
    # Enrollments are embedded JSON, so the match is done here rather than in SQL.
    result = await db.execute(select(Student).order_by(Student.student_id))
    return [s for s in result.scalars().all() if ledger.references(s.courses or [], course_id)]


async def existing_course_ids(db: AsyncSession, course_ids: Iterable[Any]) -> Set[str]:
    """The subset of `course_ids` that still exist in the catalog, as strings."""
    wanted = {str(c) for c in course_ids}
    if not wanted:
        return set()
    result = await db.execute(select(Course.id).where(Course.id.in_([UUID(c) for c in wanted])))
    return {str(c) for c in result.scalars().all()}


async def live_gpa(db: AsyncSession, enrollments: List[dict]) -> float:
    """GPA over the enrollments whose course still exists."""
    live = await existing_course_ids(db, {e.get("course_id") for e in enrollments})
    return compute_gpa(ledger.filter_live(enrollments, live))


async def create_course(db: AsyncSession, payload: CourseCreate) -> CourseResponse:
    code = required_text(payload.course_code, "course_code").upper()
    title = required_text(payload.title, "title")
    _validate_credit_hours(payload.credit_hours)
    existing = await _find_by_code(db, code)
    if existing:
        raise DuplicateKeyError(f"Course code '{code}' already exists")
    try:
        obj = Course(
            course_code=code,
            title=title,
            description=payload.description,
            credit_hours=payload.credit_hours,
            department=payload.department.strip() if payload.department else None,
            prerequisites=_normalize_prerequisites(payload.prerequisites),
            is_active=payload.is_active,
            schedule=_schedule_to_json(payload.schedule),
        )
        db.add(obj)
        await db.commit()
        await db.refresh(obj)
    except IntegrityError:
        await db.rollback()
        raise DuplicateKeyError(f"Course code '{code}' already exists")
    except SQLAlchemyError as e:
        await db.rollback()
        raise StorageUnavailableError("Could not save course") from e
    logger.info("Created course %s (%s)", obj.course_code, obj.id)
    return _to_response(obj)


async def list_courses(db: AsyncSession, active_only: bool = False) -> List[CourseResponse]:
    stmt = select(Course)
    if active_only:
        stmt = stmt.where(Course.is_active.is_(True))
    stmt = stmt.order_by(Course.course_code)
    result = await db.execute(stmt)
    return [_to_response(c) for c in result.scalars().all()]


async def get_course(db: AsyncSession, course_id: UUID) -> CourseResponse:
    return _to_response(await _get_course_row(db, course_id))


async def get_course_by_id(db: AsyncSession, course_id: UUID) -> Optional[Course]:
    result = await db.execute(select(Course).where(Course.id == course_id))
    return result.scalar_one_or_none()


async def _propagate_credit_hours(db: AsyncSession, course: Course, new_hours: int) -> CourseResponse:
    """Set the course's credit hours, copy them onto every enrollment snapshot and commit."""
    course_id = course.id
    course.credit_hours = new_hours
    try:
        students = await _students_referencing(db, course_id)
        for student in students:
            student.courses = ledger.apply_credit_hours(student.courses or [], course_id, new_hours)
            student.gpa = await live_gpa(db, student.courses)
        await db.commit()
        await db.refresh(course)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Credit hour propagation for course %s failed: %s", course_id, e)
        raise StorageUnavailableError(
            "Course credit hours were not updated: enrollment propagation failed"
        ) from e
    logger.info("Course %s credit hours set to %d (%d students updated)", course_id, new_hours, len(students))
    return _to_response(course)


async def update_credit_hours(db: AsyncSession, course_id: UUID, new_hours: int) -> CourseResponse:
    """
    Change a course's credit hours and copy the new value onto every enrollment snapshot
    referencing it, recomputing each affected student's GPA.

    Course and enrollments are written in one commit; if that fails nothing is applied
    and StorageUnavailableError is raised.
    """
    _validate_credit_hours(new_hours)
    course = await _get_course_row(db, course_id)
    return await _propagate_credit_hours(db, course, new_hours)


async def update_course(db: AsyncSession, course_id: UUID, payload: CourseUpdate) -> CourseResponse:
    course = await _get_course_row(db, course_id)
    if payload.credit_hours is not None:
        _validate_credit_hours(payload.credit_hours)
    if payload.title is not None:
        course.title = required_text(payload.title, "title")
    if payload.description is not None:
        course.description = payload.description
    if payload.department is not None:
        course.department = payload.department.strip() or None
    if payload.prerequisites is not None:
        course.prerequisites = _normalize_prerequisites(payload.prerequisites)
    if payload.is_active is not None:
        course.is_active = payload.is_active
    if payload.schedule is not None:
        course.schedule = _schedule_to_json(payload.schedule)
    if payload.credit_hours is not None and payload.credit_hours != course.credit_hours:
        # commits the other field changes together with the propagation
        return await _propagate_credit_hours(db, course, payload.credit_hours)
    try:
        await db.commit()
        await db.refresh(course)
    except SQLAlchemyError as e:
        await db.rollback()
        raise StorageUnavailableError("Could not save course") from e
    return _to_response(course)


async def remove_course(db: AsyncSession, course_id: UUID) -> None:
    """
    Delete a course after purging its enrollments from every student.

    Students are updated (enrollment removed, GPA recomputed) and the course row deleted
    in one commit. On failure the course is kept and StorageUnavailableError is raised;
    callers should verify and repair. Readers still filter dangling references.
    """
    course = await _get_course_row(db, course_id)
    try:
        students = await _students_referencing(db, course_id)
        for student in students:
            student.courses = ledger.drop(student.courses or [], course_id)
            student.gpa = await live_gpa(db, student.courses)
        await db.delete(course)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Cascade delete of course %s failed: %s", course_id, e)
        raise StorageUnavailableError(
            "Course removal failed while purging enrollments; verify student records"
        ) from e
    logger.info("Removed course %s and its enrollments from %d students", course_id, len(students))


async def list_course_enrollments(db: AsyncSession, course_id: UUID) -> List[CourseEnrollmentItem]:
    await _get_course_row(db, course_id)
    key = str(course_id)
    items: List[CourseEnrollmentItem] = []
    for student in await _students_referencing(db, course_id):
        for entry in student.courses:
            if entry.get("course_id") == key:
                items.append(
                    CourseEnrollmentItem(
                        student_id=student.student_id,
                        first_name=student.first_name,
                        last_name=student.last_name,
                        email=student.email,
                        semester=entry.get("semester") or "",
                        grade=entry.get("grade"),
                    )
                )
    return items
