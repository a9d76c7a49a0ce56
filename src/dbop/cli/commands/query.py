"""Query builder commands."""

import asyncio
from typing import Annotated, Any

import typer

from dbop.cli.context import CLIContext
from dbop.cli.output import OutputFormatter
from dbop.cli.parsing import parse_join_spec, parse_value

# Create query subcommand group
app = typer.Typer(help="Build and run SELECT statements")


@app.command("select")
def query_select(
    ctx: typer.Context,
    join_spec: Annotated[
        str,
        typer.Argument(help="'table.alias' or JSON join spec, e.g. '{\"users.u.id\": \"orders.o.user_id\"}'"),
    ],
    where: Annotated[
        list[str] | None,
        typer.Option("--where", "-w", help="WHERE condition (repeatable, ANDed)"),
    ] = None,
    params: Annotated[
        list[str] | None,
        typer.Option("--param", "-p", help="Value bound to the next '?' (repeatable)"),
    ] = None,
    select: Annotated[
        str | None,
        typer.Option("--select", "-s", help="Select expression (default: every column)"),
    ] = None,
    order: Annotated[
        str | None,
        typer.Option("--order", "-o", help="ORDER BY expression"),
    ] = None,
    page: Annotated[int | None, typer.Option("--page", help="Zero-based page")] = None,
    page_size: Annotated[int, typer.Option("--page-size", help="Rows per page")] = 20,
    count: Annotated[
        bool,
        typer.Option("--count", help="Print the matching row count instead of rows"),
    ] = False,
    show_sql: Annotated[bool, typer.Option("--sql", help="Print the SQL only")] = False,
) -> None:
    """Run a SELECT over a join specification.

    Examples:

        dbop query select users.u --where "u.status=?" --param active
        dbop query select '{"users.u.id": "orders.o.user_id"}' --page 0 --page-size 10
        dbop query select users.u --count
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    async def _run() -> Any:
        db = cli_ctx.get_db()
        try:
            qb = await db.sql_builder(parse_join_spec(join_spec))
            if where:
                # --param values line up with every '?' across all --where options
                qb.where(" AND ".join(where), [parse_value(p) for p in params or []])
            if select:
                qb.select(select)
            if order:
                qb.orderby(order)
            if page is not None:
                qb.limit(page, page_size)

            if show_sql:
                return qb.get_sql()
            if count:
                return await qb.count()
            return await qb.run()
        finally:
            await db.close()

    try:
        result = asyncio.run(_run())
        if show_sql:
            formatter.print_success("Rendered SQL", {"sql": result})
        elif count:
            formatter.print_success("Count", {"count": result})
        else:
            formatter.print_rows(f"{len(result)} row(s)", result)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
