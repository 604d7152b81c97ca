"""
Grade-point average over a student's enrollments.

Grades are percentages; each graded enrollment maps to a 4.0-scale point value through
a fixed step table and is weighted by its credit hours. Ungraded enrollments (grade
missing or None) are ignored entirely. Nothing here touches storage.
"""

import math
from typing import Any, Iterable, Optional

# (minimum grade, points), highest first. Breakpoints are inclusive and the grade is not rounded.
GRADE_POINT_TABLE = (
    (97, 4.0),
    (93, 3.9),
    (90, 3.7),
    (87, 3.3),
    (83, 3.0),
    (80, 2.7),
    (77, 2.3),
    (73, 2.0),
    (70, 1.7),
    (67, 1.3),
    (63, 1.0),
    (60, 0.7),
)


def grade_to_points(grade: float) -> float:
    for minimum, points in GRADE_POINT_TABLE:
        if grade >= minimum:
            return points
    return 0.0


def _field(enrollment: Any, name: str) -> Any:
    if isinstance(enrollment, dict):
        return enrollment.get(name)
    return getattr(enrollment, name, None)


def _numeric_grade(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value):
        return None
    return float(value)


def compute_gpa(enrollments: Iterable[Any]) -> float:
    """
    Credit-hour weighted mean of grade points.

    Accepts enrollment dicts (as stored on the student) or any object exposing
    `grade` and `credit_hours`. Returns exactly 0.0 when no enrollment is graded.

    Example:
        compute_gpa([{"grade": 90, "credit_hours": 3}, {"grade": 70, "credit_hours": 1}])
        -> (3.7 * 3 + 1.7 * 1) / 4 = 3.2
    """
    total_points = 0.0
    total_hours = 0
    for enrollment in enrollments:
        grade = _numeric_grade(_field(enrollment, "grade"))
        if grade is None:
            continue
        hours = _field(enrollment, "credit_hours") or 0
        total_points += grade_to_points(grade) * hours
        total_hours += hours
    if total_hours == 0:
        return 0.0
    return total_points / total_hours
