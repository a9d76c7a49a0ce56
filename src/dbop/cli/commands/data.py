"""Validated data commands."""

import asyncio
import json
from typing import Annotated, Any

import typer

from dbop.cli.context import CLIContext
from dbop.cli.output import OutputFormatter
from dbop.cli.parsing import parse_assignments, read_json_file

# Create data subcommand group
app = typer.Typer(help="Insert, update and fetch rows with schema validation")


def _load_data(fields: list[str] | None, from_file: str | None, json_data: str | None) -> dict[str, Any]:
    if from_file:
        return read_json_file(from_file)
    if json_data:
        return json.loads(json_data)
    data = parse_assignments(fields)
    if not data:
        raise typer.BadParameter("Provide --set key=value, --data JSON or --file")
    return data


@app.command("insert")
def data_insert(
    ctx: typer.Context,
    table: Annotated[str, typer.Argument(help="Table name, optionally 'alias.table'")],
    fields: Annotated[
        list[str] | None,
        typer.Option("--set", help="column=value (repeatable)"),
    ] = None,
    json_data: Annotated[str | None, typer.Option("--data", help="Row as a JSON object")] = None,
    from_file: Annotated[str | None, typer.Option("--file", "-f", help="Row from JSON file")] = None,
    ignore: Annotated[bool, typer.Option("--ignore", help="INSERT IGNORE")] = False,
) -> None:
    """Validate and insert one row.

    Examples:

        dbop data insert users --set name=Ada --set status=active
        dbop data insert u.users --data '{"u.name": "Ada"}'
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    async def _insert(data: dict[str, Any]) -> int | bool:
        db = cli_ctx.get_db()
        try:
            return await db.insert(table, data, ignore=ignore)
        finally:
            await db.close()

    try:
        data = _load_data(fields, from_file, json_data)
        result = asyncio.run(_insert(data))
        details = {"table": table}
        if result is not True:
            details["id"] = result
        formatter.print_success("Row inserted", details)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)


@app.command("update")
def data_update(
    ctx: typer.Context,
    table: Annotated[str, typer.Argument(help="Table name, optionally 'alias.table'")],
    fields: Annotated[
        list[str] | None,
        typer.Option("--set", help="column=value (repeatable, must include the primary key)"),
    ] = None,
    json_data: Annotated[str | None, typer.Option("--data", help="Row as a JSON object")] = None,
    from_file: Annotated[str | None, typer.Option("--file", "-f", help="Row from JSON file")] = None,
) -> None:
    """Validate and update the row identified by its primary key."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    async def _update(data: dict[str, Any]) -> int:
        db = cli_ctx.get_db()
        try:
            return await db.update(table, data)
        finally:
            await db.close()

    try:
        data = _load_data(fields, from_file, json_data)
        affected = asyncio.run(_update(data))
        formatter.print_success("Row updated", {"table": table, "affected_rows": affected})
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)


@app.command("get")
def data_get(
    ctx: typer.Context,
    table: Annotated[str, typer.Argument(help="Table name, optionally 'alias.table'")],
    keys: Annotated[
        list[str],
        typer.Option("--key", "-k", help="primary_key=value (repeatable)"),
    ],
    columns: Annotated[
        list[str] | None,
        typer.Option("--column", "-c", help="Only return these columns"),
    ] = None,
) -> None:
    """Fetch one row by primary key."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    async def _get(data: dict[str, Any]) -> dict[str, Any] | None:
        db = cli_ctx.get_db()
        try:
            return await db.select_one(table, data, columns)
        finally:
            await db.close()

    try:
        row = asyncio.run(_get(parse_assignments(keys)))
        formatter.print_rows(table, [row] if row else [])
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
