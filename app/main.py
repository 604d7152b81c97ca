import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.courses.router import router as courses_router
from app.api.v1.students.router import router as students_router
from app.core.config import settings
from app.db.init_db import create_tables
from app.db.session import engine

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s", settings.app_title)
    await create_tables(engine)
    yield
    await engine.dispose()
    logger.info("Shutting down %s", settings.app_title)


def create_app() -> FastAPI:
    app = FastAPI(title=settings.app_title, lifespan=lifespan)

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(courses_router)
    app.include_router(students_router)

    return app


app = create_app()
