"""SQL script commands."""

import asyncio
from typing import Annotated

import typer

from dbop.cli.context import CLIContext
from dbop.cli.output import OutputFormatter
from dbop.cli.parsing import parse_assignments

# Create script subcommand group
app = typer.Typer(help="Run SQL script files")


@app.command("run")
def script_run(
    ctx: typer.Context,
    path: Annotated[str, typer.Argument(help="SQL script file")],
    delimiter: Annotated[
        str,
        typer.Option(
            "--delimiter",
            help="Statement delimiter, e.g. ';' ('per-line' or empty: one statement per line)",
        ),
    ] = "",
    variables: Annotated[
        list[str] | None,
        typer.Option("--var", help="Template variable name=value for {{ name }} (repeatable)"),
    ] = None,
) -> None:
    """Execute a script's statements in order, stopping at the first failure.

    Examples:

        dbop script run schema.sql --delimiter ";"
        dbop script run seed.sql --var tenant=acme
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    async def _run() -> int:
        db = cli_ctx.get_db()
        try:
            return await db.run_file(path, delimiter=delimiter, variables=parse_assignments(variables))
        finally:
            await db.close()

    try:
        executed = asyncio.run(_run())
        formatter.print_success("Script executed", {"file": path, "statements": executed})
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
