"""Schema inspection commands."""

import asyncio
from typing import Annotated

import typer

from dbop.cli.context import CLIContext
from dbop.cli.output import OutputFormatter
from dbop.core.types import TableDescriptor

# Create schema subcommand group
app = typer.Typer(help="Inspect table schemas")


@app.command("describe")
def schema_describe(
    ctx: typer.Context,
    table: Annotated[str, typer.Argument(help="Table name")],
) -> None:
    """Show the columns, types and keys of a table."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    async def _describe() -> TableDescriptor:
        db = cli_ctx.get_db()
        try:
            return await db.describe(table)
        finally:
            await db.close()

    try:
        descriptor = asyncio.run(_describe())
        formatter.print_table_descriptor(descriptor)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
