# courseware/settings/config.py  (Pydantic v2)
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    # ---------- Database ----------
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./courseware.db")
    RUN_DB_CREATE_ALL: bool = Field(default=False)

    # ---------- Content storage ----------
    # courses live under <STORAGE_ROOT>/courses
    STORAGE_ROOT: str = Field(default="./storage")

    # ---------- Auth ----------
    SECRET: str = Field(default="")
    COOKIE_SECURE: bool = Field(default=False)
    ADMIN_EMAIL: Optional[str] = Field(default=None)
    ADMIN_PASSWORD: Optional[str] = Field(default=None)
    ADMIN_USERNAME: str = Field(default="admin")

    # ---------- Logging ----------
    APP_ENV: Literal["local", "testing", "production"] = Field(default="production")
    LOG_LEVEL: str = Field(default="INFO")
    # content debug lines are only written when > 1
    DEBUG_LEVEL: int = Field(default=0)

    # ---------- pydantic-settings config ----------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # allow lower/upper env names
        extra="ignore",
    )

    @property
    def async_database_url(self) -> str:
        raw = self.DATABASE_URL or ""
        if raw.startswith("postgresql+psycopg"):
            # if someone provided a sync URL by mistake, upgrade it to async
            return "postgresql+asyncpg" + raw[len(raw.split("://", 1)[0]):]
        return raw


settings = Settings()
