"""Run the statements of a flat SQL script file, one after another."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jinja2 import Environment, StrictUndefined

if TYPE_CHECKING:
    from dbop.core.connection import Connection

logger = logging.getLogger(__name__)

PER_LINE = "per-line"
COMMENT_PREFIXES = ("//", "--")


def split_statements(lines: Iterable[str], delimiter: str = "") -> list[str]:
    """Group script lines into statements.

    Args:
        lines: Raw lines of the script
        delimiter: ``"per-line"`` or ``""`` makes every line a statement;
            anything else ends a statement on a line ending with it

    Returns:
        Statements in file order
    """
    statements: list[str] = []
    block: list[str] = []

    for raw in lines:
        line = raw.strip()
        if not line or line.startswith(COMMENT_PREFIXES):
            continue

        if delimiter in (PER_LINE, ""):
            statements.append(line)
            continue

        block.append(line)
        if line.endswith(delimiter):
            statements.append("\n".join(block))
            block = []

    if block:
        statements.append("\n".join(block))
    return statements


class SQLFileRunner:
    """Executes a script's statements sequentially on one connection.

    The first failing statement aborts the run and its error propagates;
    nothing after it is sent.
    """

    def __init__(
        self,
        connection: Connection,
        delimiter: str = "",
        variables: Mapping[str, Any] | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            connection: Connection the statements run on
            delimiter: Statement delimiter (see split_statements)
            variables: Template values; when given, each statement is rendered
                with jinja2 (``{{ name }}``) before it runs
        """
        self._connection = connection
        self.delimiter = delimiter
        self.variables = dict(variables or {})
        self._env = Environment(undefined=StrictUndefined, autoescape=False)

    def render(self, statement: str) -> str:
        if not self.variables:
            return statement
        return self._env.from_string(statement).render(**self.variables)

    async def run_file(self, path: str | Path) -> int:
        """Execute every statement in ``path``.

        Returns:
            Number of statements executed
        """
        with open(path, encoding="utf-8") as handle:
            statements = split_statements(handle, self.delimiter)
        return await self.run_statements(statements)

    async def run_statements(self, statements: Iterable[str]) -> int:
        executed = 0
        for index, statement in enumerate(statements, start=1):
            if not statement.strip():
                continue
            sql = self.render(statement)
            logger.info(f"Executing statement {index}")
            try:
                await self._connection.execute(sql)
            except Exception as e:
                logger.error(f"Statement {index} failed, aborting script: {e}")
                raise
            executed += 1
        return executed
