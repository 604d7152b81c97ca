"""
Enrollment rules for the course list embedded in a student record.

All functions take the current list and return a new one; the input is never mutated,
so a failed rule check leaves the student untouched. Course identity is compared as
the string form of the course UUID, semesters as exact text.
"""

import math
from typing import Any, Iterable, List, Optional, Set
from uuid import UUID

from app.core.exceptions import AlreadyEnrolledError, NotFoundError, ValidationError

MIN_GRADE = 0.0
MAX_GRADE = 100.0


def _key(course_id: Any) -> str:
    return str(course_id)


def can_enroll(enrollments: List[dict], course_id: UUID, semester: str) -> bool:
    """False iff an entry already matches both the course and the semester."""
    key = _key(course_id)
    return not any(e.get("course_id") == key and e.get("semester") == semester for e in enrollments)


def enroll(enrollments: List[dict], course: Any, semester: str) -> List[dict]:
    """Append an ungraded enrollment, snapshotting the course's credit hours."""
    if course is None:
        raise NotFoundError("Course not found")
    semester = (semester or "").strip()
    if not semester:
        raise ValidationError("Semester is required", field="semester")
    if not can_enroll(enrollments, course.id, semester):
        raise AlreadyEnrolledError()
    entry = {
        "course_id": _key(course.id),
        "grade": None,
        "semester": semester,
        "credit_hours": course.credit_hours,
    }
    return [dict(e) for e in enrollments] + [entry]


def drop(enrollments: List[dict], course_id: UUID) -> List[dict]:
    """Remove every entry for the course, across all semesters. No match is a no-op."""
    key = _key(course_id)
    return [dict(e) for e in enrollments if e.get("course_id") != key]


def parse_grade(raw: Any) -> Optional[float]:
    """Parse user input into a grade. Empty or non-numeric input means "ungraded" (None)."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = str(raw).strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            return None
    if not math.isfinite(value):
        return None
    return value


def set_grade(enrollments: List[dict], course_id: UUID, grade: Optional[float]) -> List[dict]:
    """
    Set the grade on the first entry for the course. `None` clears it back to ungraded.

    Out-of-range grades are rejected rather than clamped.
    """
    if grade is not None and not (MIN_GRADE <= grade <= MAX_GRADE):
        raise ValidationError(
            f"Grade must be between {MIN_GRADE:g} and {MAX_GRADE:g}", field="grade"
        )
    key = _key(course_id)
    updated = [dict(e) for e in enrollments]
    for entry in updated:
        if entry.get("course_id") == key:
            entry["grade"] = grade
            return updated
    raise NotFoundError("Course not found in student's enrollments")


def filter_live(enrollments: Iterable[dict], live_course_ids: Set[Any]) -> List[dict]:
    """Drop entries whose course no longer exists."""
    live = {_key(c) for c in live_course_ids}
    return [dict(e) for e in enrollments if e.get("course_id") in live]


def apply_credit_hours(enrollments: List[dict], course_id: UUID, credit_hours: int) -> List[dict]:
    """Copy a course's new credit hours onto every entry referencing it."""
    key = _key(course_id)
    updated = [dict(e) for e in enrollments]
    for entry in updated:
        if entry.get("course_id") == key:
            entry["credit_hours"] = credit_hours
    return updated


def references(enrollments: Iterable[dict], course_id: UUID) -> bool:
    key = _key(course_id)
    return any(e.get("course_id") == key for e in enrollments)
