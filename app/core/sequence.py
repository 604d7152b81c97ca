"""
Named integer sequences backed by the `counters` table.

Each call is a single upsert statement (`INSERT .. ON CONFLICT DO UPDATE .. RETURNING`),
so concurrent callers never read the same value: the database serializes the row update.
The counter row is created at 1 on first use.
"""

import logging

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import StorageUnavailableError
from app.core.models import Counter

logger = logging.getLogger(__name__)

STUDENT_ID_SEQUENCE = "studentId"

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _upsert_increment(dialect_name: str, name: str):
    try:
        insert = _INSERT_BY_DIALECT[dialect_name]
    except KeyError:
        raise StorageUnavailableError(f"Sequences are not supported on dialect '{dialect_name}'")
    stmt = insert(Counter).values(name=name, value=1)
    return stmt.on_conflict_do_update(
        index_elements=[Counter.name],
        set_={"value": Counter.value + 1},
    ).returning(Counter.value)


async def next_value(db: AsyncSession, name: str) -> int:
    """
    Atomically increment and return the counter `name`.

    The increment is committed immediately so the value is never handed out twice,
    even if the caller's later work fails (a skipped value is acceptable, a reused one is not).
    Raises StorageUnavailableError when the update cannot be completed.
    """
    stmt = _upsert_increment(db.get_bind().dialect.name, name)
    try:
        result = await db.execute(stmt)
        value = result.scalar_one()
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Counter %r could not be incremented: %s", name, e)
        raise StorageUnavailableError(f"Could not allocate next value for sequence '{name}'") from e
    logger.debug("Sequence %r issued %d", name, value)
    return value
