from app.core.models.counter import Counter
from app.core.models.course import Course
from app.core.models.student import Student

__all__ = [
    "Counter",
    "Course",
    "Student",
]
