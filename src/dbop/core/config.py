"""Runtime configuration for dbop."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./dbop.db"

# Bookkeeping columns the database maintains itself; ignored on insert/update
DEFAULT_CONTROL_FIELDS = frozenset({"dtMod", "dtCreate", "rec_mod_dt", "rec_create_dt"})


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


class DbOpConfig(BaseModel):
    """Settings shared by the facade, the builders it hands out and the CLI."""

    database_url: str = Field(default=DEFAULT_DATABASE_URL, description="SQLAlchemy URL")
    echo: bool = Field(default=False, description="Echo SQL through SQLAlchemy's engine logger")
    timezone: str | None = Field(
        default=None, description="Zone builders convert temporal values to (None = untouched)"
    )
    control_fields: frozenset[str] = Field(default=DEFAULT_CONTROL_FIELDS)
    log_sql: bool = Field(default=False, description="Log rendered builder SQL at INFO")

    @classmethod
    def from_env(cls, **overrides: object) -> DbOpConfig:
        """Build config from ``DBOP_*`` environment variables.

        Priority:
        1. Explicit keyword overrides (ignored when None)
        2. DBOP_DATABASE_URL / DBOP_ECHO / DBOP_TIMEZONE / DBOP_LOG_SQL
        3. Defaults
        """
        values: dict[str, object] = {
            "database_url": os.getenv("DBOP_DATABASE_URL") or DEFAULT_DATABASE_URL,
            "echo": _env_flag("DBOP_ECHO"),
            "timezone": os.getenv("DBOP_TIMEZONE") or None,
            "log_sql": _env_flag("DBOP_LOG_SQL"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)
