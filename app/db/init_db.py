"""
Create the registrar tables (counters, courses, students) if they do not exist.

Run directly: python -m app.db.init_db
"""
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

import app.core.models  # noqa: F401  (register tables on Base.metadata)
from app.db.session import Base, engine

logger = logging.getLogger(__name__)


async def create_tables(db_engine: AsyncEngine) -> None:
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tables ready: %s", ", ".join(sorted(Base.metadata.tables)))


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    await create_tables(engine)
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
