"""Ferry Assist command-line entry point.

Runs the voice assistant and provides small helpers for managing the route
database and checking the setup.
"""

from __future__ import annotations

import asyncio
import logging
import logging.config
import signal
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from .app import FerryAssistApp, check_configuration
from .config import FerryConfig
from .exceptions import ConfigurationError, EngineError
from .routes import RouteStore
from .voice.synthesis import SynthesisGateway

logger = logging.getLogger(__name__)

# Rich console for output
console = Console()


def load_config(config_path: str | None, verbose: bool = False) -> FerryConfig:
    """Load configuration and set up logging, exiting on failure."""
    try:
        config = FerryConfig.load(yaml_path=Path(config_path) if config_path else None)
    except Exception as e:
        console.print(f"[red]Failed to load configuration: {e}[/red]")
        sys.exit(1)

    if verbose:
        config.debug = True

    logging.config.dictConfig(config.get_log_config())
    logger.debug(f"Loaded configuration for {config.name}")
    return config


def setup_signal_handlers(app: FerryAssistApp) -> None:
    """Setup signal handlers for graceful shutdown.

    Args:
        app: Application to stop on signal.
    """

    def signal_handler(sig, frame) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {sig}, shutting down...")
        app.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


@click.group(invoke_without_command=True)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True),
    help="Path to YAML config file",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable verbose/debug logging",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """
    Ferry Assist: hands-free ferry guidance for ETS2/ATS.

    Without a subcommand, starts the voice assistant.
    """
    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(config_path, verbose)

    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start the voice assistant."""
    config: FerryConfig = ctx.obj["config"]

    async def run_assistant() -> None:
        app = FerryAssistApp(config, console=console)
        setup_signal_handlers(app)

        try:
            await app.initialize()
            await app.run()
        finally:
            await app.shutdown()

    try:
        asyncio.run(run_assistant())
    except KeyboardInterrupt:
        console.print("\n[yellow]Goodbye![/yellow]")
    except (ConfigurationError, EngineError) as e:
        console.print(f"[red]✗[/red] Startup failed: {e}")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Fatal error: {e}[/red]")
        logger.exception("Fatal error in main")
        sys.exit(1)


@cli.group()
def engine() -> None:
    """Inspect the VOICEVOX engine setup."""


@engine.command("check")
@click.pass_context
def engine_check(ctx: click.Context) -> None:
    """Check the engine path, route database and engine endpoint."""
    config: FerryConfig = ctx.obj["config"]
    problems = check_configuration(config)

    for problem in problems:
        console.print(f"[red]✗[/red] {problem}")

    async def probe() -> bool:
        gateway = SynthesisGateway(config.engine)
        try:
            return await gateway.is_engine_available()
        finally:
            await gateway.shutdown()

    if asyncio.run(probe()):
        console.print(f"[green]✓[/green] VOICEVOX answering at {config.engine.base_url}")
    else:
        console.print(f"[yellow]VOICEVOX not running at {config.engine.base_url}[/yellow]")

    if problems:
        sys.exit(1)

    console.print("[green]✓[/green] Configuration looks good")


@cli.group()
def route() -> None:
    """Manage the ferry route database."""


@route.command("add")
@click.argument("departure")
@click.argument("arrival")
@click.argument("boarding_port")
@click.argument("landing_port")
@click.pass_context
def route_add(
    ctx: click.Context,
    departure: str,
    arrival: str,
    boarding_port: str,
    landing_port: str,
) -> None:
    """Add a route from DEPARTURE to ARRIVAL via BOARDING_PORT and LANDING_PORT."""
    config: FerryConfig = ctx.obj["config"]
    store = RouteStore(config.database_path)
    store.open(create=True)
    try:
        added = store.add_route(departure, arrival, boarding_port, landing_port)
    finally:
        store.close()

    console.print(
        f"[green]✓[/green] Route {added.id}: {added.departure_area} → {added.arrival_area} "
        f"({added.boarding_port} → {added.landing_port})"
    )


@route.command("get")
@click.argument("departure")
@click.argument("arrival")
@click.pass_context
def route_get(ctx: click.Context, departure: str, arrival: str) -> None:
    """Look up the route from DEPARTURE to ARRIVAL."""
    config: FerryConfig = ctx.obj["config"]
    store = RouteStore(config.database_path)
    try:
        store.open()
        found = store.get_route(departure, arrival)
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] {e}")
        sys.exit(1)
    finally:
        store.close()

    if found is None:
        console.print(f"[yellow]No ferry from {departure} to {arrival}[/yellow]")
        sys.exit(1)

    console.print(f"Board at [bold]{found.boarding_port}[/bold], land at [bold]{found.landing_port}[/bold]")


@route.command("list")
@click.pass_context
def route_list(ctx: click.Context) -> None:
    """List every route in the database."""
    config: FerryConfig = ctx.obj["config"]
    store = RouteStore(config.database_path)
    try:
        store.open()
        routes = store.list_routes()
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] {e}")
        sys.exit(1)
    finally:
        store.close()

    table = Table(title="Ferry Routes")
    table.add_column("#", style="cyan")
    table.add_column("Departure")
    table.add_column("Arrival")
    table.add_column("Boarding Port")
    table.add_column("Landing Port")

    for r in routes:
        table.add_row(str(r.id), r.departure_area, r.arrival_area, r.boarding_port, r.landing_port)

    console.print(table)


if __name__ == "__main__":
    cli()
