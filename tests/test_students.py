import logging
from datetime import date
from uuid import uuid4

import pytest
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.courses import service as course_service
from app.api.v1.courses.schemas import CourseCreate
from app.api.v1.students import service
from app.api.v1.students.schemas import Address, StudentCreate, StudentUpdate
from app.core.exceptions import (
    AlreadyEnrolledError,
    DuplicateKeyError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)
from app.core.models import Student


def _payload(email: str = "ada@example.com", **overrides) -> StudentCreate:
    data = {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": email,
        "department": "Computer Science",
    }
    data.update(overrides)
    return StudentCreate(**data)


async def _row(db: AsyncSession, student_id: int) -> Student:
    result = await db.execute(select(Student).where(Student.student_id == student_id))
    return result.scalar_one()


async def _course(db: AsyncSession, code: str = "CS101", credit_hours: int = 3):
    return await course_service.create_course(
        db, CourseCreate(course_code=code, title=f"Course {code}", credit_hours=credit_hours)
    )


@pytest.mark.asyncio
async def test_create_assigns_sequential_ids(db_session: AsyncSession) -> None:
    first = await service.create_student(db_session, _payload("a@example.com"))
    second = await service.create_student(db_session, _payload("b@example.com"))
    assert (first.student_id, second.student_id) == (1, 2)
    assert first.gpa == 0.0
    assert first.courses == []
    assert first.is_active is True
    assert first.enrollment_date == date.today()
    assert first.address == Address(street="", city="")


@pytest.mark.asyncio
async def test_duplicate_email(db_session: AsyncSession) -> None:
    await service.create_student(db_session, _payload("a@example.com"))
    with pytest.raises(DuplicateKeyError):
        await service.create_student(db_session, _payload("A@example.com"))


def test_schema_rejects_bad_input() -> None:
    with pytest.raises(SchemaValidationError):
        _payload("not-an-email")
    with pytest.raises(SchemaValidationError):
        _payload(first_name="")
    with pytest.raises(SchemaValidationError):
        _payload(enrollment_date="2024-02-30")


@pytest.mark.asyncio
async def test_update_preserves_student_id(db_session: AsyncSession) -> None:
    created = await service.create_student(db_session, _payload())
    updated = await service.update_student(
        db_session,
        created.student_id,
        StudentUpdate(student_id=9999, first_name="Augusta", address=Address(city="London")),
    )
    assert updated.student_id == created.student_id
    assert updated.first_name == "Augusta"
    assert updated.address.city == "London"
    with pytest.raises(NotFoundError):
        await service.get_student(db_session, 9999)


@pytest.mark.asyncio
async def test_update_missing_student(db_session: AsyncSession) -> None:
    with pytest.raises(NotFoundError):
        await service.update_student(db_session, 42, StudentUpdate(first_name="X"))


@pytest.mark.asyncio
async def test_update_to_taken_email(db_session: AsyncSession) -> None:
    await service.create_student(db_session, _payload("a@example.com"))
    b = await service.create_student(db_session, _payload("b@example.com"))
    with pytest.raises(DuplicateKeyError):
        await service.update_student(db_session, b.student_id, StudentUpdate(email="a@example.com"))


@pytest.mark.asyncio
async def test_delete_student(db_session: AsyncSession) -> None:
    course = await _course(db_session)
    created = await service.create_student(db_session, _payload())
    await service.enroll_in_course(db_session, created.student_id, course.id, "Fall 2024")
    await service.delete_student(db_session, created.student_id)
    with pytest.raises(NotFoundError):
        await service.get_student(db_session, created.student_id)
    with pytest.raises(NotFoundError):
        await service.delete_student(db_session, created.student_id)
    # No cascade onto the catalog
    assert await course_service.get_course_by_id(db_session, course.id) is not None


@pytest.mark.asyncio
async def test_enrollment_uniqueness_per_semester(db_session: AsyncSession) -> None:
    course = await _course(db_session)
    student = await service.create_student(db_session, _payload())
    await service.enroll_in_course(db_session, student.student_id, course.id, "Fall 2024")
    with pytest.raises(AlreadyEnrolledError):
        await service.enroll_in_course(db_session, student.student_id, course.id, "Fall 2024")
    result = await service.enroll_in_course(db_session, student.student_id, course.id, "Spring 2025")
    assert [c.semester for c in result.courses] == ["Fall 2024", "Spring 2025"]
    assert all(c.credit_hours == 3 and c.grade is None for c in result.courses)


@pytest.mark.asyncio
async def test_enroll_missing_student_or_course(db_session: AsyncSession) -> None:
    course = await _course(db_session)
    student = await service.create_student(db_session, _payload())
    with pytest.raises(NotFoundError):
        await service.enroll_in_course(db_session, 999, course.id, "Fall 2024")
    with pytest.raises(NotFoundError):
        await service.enroll_in_course(db_session, student.student_id, uuid4(), "Fall 2024")


@pytest.mark.asyncio
async def test_grades_drive_gpa(db_session: AsyncSession) -> None:
    cs101 = await _course(db_session, "CS101", 3)
    cs102 = await _course(db_session, "CS102", 1)
    student = await service.create_student(db_session, _payload())
    sid = student.student_id
    await service.enroll_in_course(db_session, sid, cs101.id, "Fall 2024")
    await service.enroll_in_course(db_session, sid, cs102.id, "Fall 2024")

    await service.record_grade(db_session, sid, cs101.id, "90")
    result = await service.record_grade(db_session, sid, cs102.id, 70)
    assert result.gpa == pytest.approx(3.2)

    # Unparseable input clears the grade instead of failing.
    result = await service.record_grade(db_session, sid, cs102.id, "n/a")
    assert result.gpa == pytest.approx(3.7)
    assert result.courses[1].grade is None

    with pytest.raises(ValidationError):
        await service.record_grade(db_session, sid, cs101.id, "120")

    row = await _row(db_session, sid)
    assert row.gpa == pytest.approx(3.7)


@pytest.mark.asyncio
async def test_drop_recomputes_gpa_and_is_idempotent(db_session: AsyncSession) -> None:
    cs101 = await _course(db_session, "CS101", 3)
    cs102 = await _course(db_session, "CS102", 3)
    student = await service.create_student(db_session, _payload())
    sid = student.student_id
    await service.enroll_in_course(db_session, sid, cs101.id, "Fall 2024")
    await service.enroll_in_course(db_session, sid, cs102.id, "Fall 2024")
    await service.record_grade(db_session, sid, cs101.id, 97)
    await service.record_grade(db_session, sid, cs102.id, 50)

    result = await service.drop_course(db_session, sid, cs102.id)
    assert [c.course_code for c in result.courses] == ["CS101"]
    assert result.gpa == pytest.approx(4.0)

    again = await service.drop_course(db_session, sid, cs102.id)
    assert again.courses == result.courses
    assert again.gpa == result.gpa


@pytest.mark.asyncio
async def test_record_grade_for_unenrolled_course(db_session: AsyncSession) -> None:
    course = await _course(db_session)
    student = await service.create_student(db_session, _payload())
    with pytest.raises(NotFoundError):
        await service.record_grade(db_session, student.student_id, course.id, "90")


@pytest.mark.asyncio
async def test_reader_filters_dangling_course_reference(db_session: AsyncSession) -> None:
    course = await _course(db_session)
    student = await service.create_student(db_session, _payload())
    await service.enroll_in_course(db_session, student.student_id, course.id, "Fall 2024")

    # Simulate an interrupted cascade: the enrollment points at a course that no longer exists.
    obj = await _row(db_session, student.student_id)
    ghost = {"course_id": str(uuid4()), "grade": 90.0, "semester": "Fall 2024", "credit_hours": 3}
    obj.courses = list(obj.courses) + [ghost]
    await db_session.commit()

    result = await service.get_student(db_session, student.student_id)
    assert [c.course_id for c in result.courses] == [course.id]


@pytest.mark.asyncio
async def test_available_courses(db_session: AsyncSession) -> None:
    cs101 = await _course(db_session, "CS101")
    cs102 = await _course(db_session, "CS102")
    student = await service.create_student(db_session, _payload())
    await service.enroll_in_course(db_session, student.student_id, cs101.id, "Fall 2024")
    available = await service.available_courses(db_session, student.student_id)
    assert [c.id for c in available] == [cs102.id]


@pytest.mark.asyncio
async def test_gpa_ignores_dangling_course_reference(db_session: AsyncSession) -> None:
    course = await _course(db_session)
    student = await service.create_student(db_session, _payload())
    sid = student.student_id
    await service.enroll_in_course(db_session, sid, course.id, "Fall 2024")
    await service.record_grade(db_session, sid, course.id, 97)

    obj = await _row(db_session, sid)
    ghost = {"course_id": str(uuid4()), "grade": 50.0, "semester": "Fall 2024", "credit_hours": 3}
    obj.courses = list(obj.courses) + [ghost]
    await db_session.commit()

    result = await service.record_grade(db_session, sid, course.id, 97)
    assert [c.course_code for c in result.courses] == ["CS101"]
    assert result.gpa == pytest.approx(4.0)
    assert (await _row(db_session, sid)).gpa == pytest.approx(4.0)


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["first_name", "last_name", "department"])
async def test_create_rejects_blank_text(db_session: AsyncSession, field: str) -> None:
    with pytest.raises(ValidationError) as exc:
        await service.create_student(db_session, _payload(**{field: "   "}))
    assert exc.value.field == field
    assert (await db_session.execute(select(Student))).scalars().all() == []
    # No identifier was drawn for the rejected record.
    created = await service.create_student(db_session, _payload())
    assert created.student_id == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["first_name", "last_name", "department"])
async def test_update_rejects_blank_text(db_session: AsyncSession, field: str) -> None:
    created = await service.create_student(db_session, _payload())
    with pytest.raises(ValidationError) as exc:
        await service.update_student(
            db_session, created.student_id, StudentUpdate(email="new@example.com", **{field: " "})
        )
    assert exc.value.field == field
    after = await service.get_student(db_session, created.student_id)
    assert after.email == "ada@example.com"
    assert getattr(after, field) == getattr(created, field)


@pytest.mark.asyncio
async def test_create_assigns_no_id_when_sequence_fails(db_session: AsyncSession, monkeypatch) -> None:
    async def failing_commit() -> None:
        raise OperationalError("COMMIT", None, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", failing_commit)
    with pytest.raises(StorageUnavailableError):
        await service.create_student(db_session, _payload())
    monkeypatch.undo()

    assert (await db_session.execute(select(Student))).scalars().all() == []
    created = await service.create_student(db_session, _payload())
    assert created.student_id == 1


@pytest.mark.asyncio
async def test_enrollment_changes_are_logged(db_session: AsyncSession, caplog) -> None:
    course = await _course(db_session)
    student = await service.create_student(db_session, _payload())
    sid = student.student_id
    await service.enroll_in_course(db_session, sid, course.id, "Fall 2024")

    with caplog.at_level(logging.INFO, logger="app.api.v1.students.service"):
        await service.record_grade(db_session, sid, course.id, "88")
        await service.drop_course(db_session, sid, course.id)
    messages = [r.getMessage() for r in caplog.records]
    assert f"Student {sid} grade for course {course.id} set to 88.0" in messages
    assert f"Student {sid} dropped course {course.id}" in messages
