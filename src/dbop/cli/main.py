"""dbop CLI - Main entry point."""

import logging
import sys
from typing import Annotated

import typer

import dbop
from dbop.cli.context import CLIContext, get_config

# Create main Typer app
app = typer.Typer(
    name="dbop",
    help="dbop CLI - schema-aware SQL building and validated writes",
    no_args_is_help=True,
)

# Store CLI context globally (will be set in callback)
state: dict[str, CLIContext] = {}


@app.callback()
def main_callback(
    ctx: typer.Context,
    database: Annotated[
        str | None,
        typer.Option(
            "--database",
            "-d",
            envvar="DBOP_DATABASE_URL",
            help="Database URL (MySQL or SQLite)",
        ),
    ] = None,
    echo: Annotated[
        bool,
        typer.Option(
            "--echo",
            "-e",
            help="Echo SQL statements to console",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            "-j",
            help="Output as JSON (machine-readable)",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Log builder SQL and script progress to stderr",
        ),
    ] = False,
) -> None:
    """Initialize CLI context with global options."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )

    cli_ctx = CLIContext(config=get_config(database, echo), json_output=json_output)
    if verbose:
        cli_ctx.config = cli_ctx.config.model_copy(update={"log_sql": True})

    # Store in Typer context for command access
    ctx.obj = cli_ctx
    state["cli_ctx"] = cli_ctx


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"dbop v{dbop.__version__}")


# Register command groups
from dbop.cli.commands import data, query, schema, script

app.add_typer(schema.app, name="schema")
app.add_typer(query.app, name="query")
app.add_typer(data.app, name="data")
app.add_typer(script.app, name="script")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
