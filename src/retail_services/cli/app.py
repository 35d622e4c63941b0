"""Main CLI application."""

import typer

from retail_services.cli.commands import services
from retail_services.logging import setup_logging

app = typer.Typer(
    name="retail-services-cli",
    help="Retail services CLI - Service registry tools",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging with full log format",
    ),
):
    """Global options for all commands."""
    if verbose:
        setup_logging("DEBUG")


# Register command groups
app.add_typer(services.app, name="services")
