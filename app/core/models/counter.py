"""Named monotonically increasing sequences (e.g. "studentId")."""

from sqlalchemy import Column, Integer, String

from app.db.session import Base


class Counter(Base):
    __tablename__ = "counters"

    name = Column(String(100), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
