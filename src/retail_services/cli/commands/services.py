"""Service registry commands."""

import asyncio

import typer

from retail_services.cli.utils import STATUS_STYLES, console, load_registry, render_entries
from retail_services.exceptions import LoadFailure, UnknownServiceError
from retail_services.services.bootstrap import bootstrap_services
from retail_services.services.enums import ServiceCategory, ServiceStatus
from retail_services.services.registry import ServiceRegistry

app = typer.Typer(help="Service registry operations")


@app.command("list")
def list_services(
    category: ServiceCategory | None = typer.Option(
        None,
        "--category",
        "-c",
        help="Only list services of this category",
    ),
):
    """List the services registered in the loader table.

    Examples:
        retail-services-cli services list
        retail-services-cli services list --category domain
    """
    registry = load_registry()
    names = set(registry.names(category))
    entries = [entry for entry in registry.snapshot() if entry.service_name in names]

    if not entries:
        console.print("[yellow]No services registered[/yellow]")
        return

    console.print(render_entries(entries, title="Registered services"))


@app.command()
def load(
    names: list[str] = typer.Argument(..., help="Services to load"),
):
    """Load services and report their state.

    All named services are requested concurrently. Exits with code 1 if any
    of them is unknown or fails to load.

    Examples:
        retail-services-cli services load pricing
        retail-services-cli services load pricing catalog
    """
    registry = load_registry()

    unknown = [name for name in names if name not in registry.loaders]
    if unknown:
        console.print(f"[red]Error: unknown services: {', '.join(unknown)}[/red]")
        raise typer.Exit(1)

    failures = asyncio.run(_load_all(registry, names))

    console.print(render_entries([e for e in registry.snapshot() if e.service_name in names], title="Load results"))

    if failures:
        for failure in failures:
            console.print(f"[red]{failure}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Loaded {len(names)} service(s)[/green]")


@app.command()
def status(
    name: str = typer.Argument(..., help="Service to inspect"),
    load: bool = typer.Option(False, "--load", "-l", help="Load the service first and run its health check"),
):
    """Show the state of one service.

    Exits with code 1 if the service is unknown or its load failed.

    Examples:
        retail-services-cli services status pricing
        retail-services-cli services status pricing --load
    """
    registry = load_registry()

    try:
        if load:
            asyncio.run(_load_and_check(registry, name))
        current = registry.status(name)
    except UnknownServiceError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e

    style = STATUS_STYLES.get(current, "")
    console.print(f"{name}: [{style}]{current}[/{style}]" if style else f"{name}: {current}")

    healthy = registry.last_health(name)
    if healthy is not None:
        console.print(f"healthy: {'yes' if healthy else 'no'}")

    failure = registry.error(name)
    if failure is not None:
        console.print(f"[red]error: {failure.cause}[/red]")
        raise typer.Exit(1)


@app.command()
def preload():
    """Preload all critical services, as done at application start.

    Exits with code 1 if any critical service fails to load.

    Examples:
        retail-services-cli services preload
    """
    registry = load_registry()
    statuses = asyncio.run(bootstrap_services(registry))

    if not statuses:
        console.print("[yellow]No critical services to preload[/yellow]")
        return

    critical = set(statuses)
    console.print(render_entries([e for e in registry.snapshot() if e.service_name in critical], title="Critical services"))

    if any(status == ServiceStatus.FAILED for status in statuses.values()):
        console.print("[red]Some critical services failed to load[/red]")
        raise typer.Exit(1)

    console.print("[green]All critical services loaded[/green]")


async def _load_all(registry: ServiceRegistry, names: list[str]) -> list[Exception]:
    results = await asyncio.gather(*(registry.get_or_load(name) for name in names), return_exceptions=True)
    return [result for result in results if isinstance(result, (LoadFailure, UnknownServiceError))]


async def _load_and_check(registry: ServiceRegistry, name: str) -> None:
    try:
        await registry.get_or_load(name)
    except LoadFailure:
        return
    await registry.check_health(name)
