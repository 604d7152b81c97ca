from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field("sqlite+aiosqlite:///./registrar.db", alias="DATABASE_URL")
    database_echo: bool = Field(False, alias="DATABASE_ECHO")

    app_title: str = Field("Student Registrar", alias="APP_TITLE")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
