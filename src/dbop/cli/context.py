"""CLI context management for database connections and shared state."""

from dataclasses import dataclass

from dbop import DbOp, DbOpConfig


def get_config(url: str | None, echo: bool) -> DbOpConfig:
    """Resolve settings from CLI args, environment variables, or defaults.

    Priority:
    1. Explicit --database / --echo arguments
    2. DBOP_* environment variables
    3. Defaults (sqlite+aiosqlite:///./dbop.db)
    """
    return DbOpConfig.from_env(database_url=url, echo=echo or None)


@dataclass
class CLIContext:
    """Shared context for CLI commands.

    Each command runs in its own event loop, so it gets a fresh DbOp and
    closes it before returning.
    """

    config: DbOpConfig
    json_output: bool

    def get_db(self) -> DbOp:
        """Create a dbop instance for the configured database."""
        return DbOp(config=self.config)
