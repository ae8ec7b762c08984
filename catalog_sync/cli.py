"""
Command line interface for the catalog synchronization engine.

Provides operational commands: configuration checks, schema bootstrap,
sync runs against a provider, the run ledger and ad-hoc category matching.
"""
import json
import sys

import click
import structlog
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from sqlalchemy import text

from catalog_sync import __version__
from catalog_sync.config.settings import get_environment_info, get_settings, validate_settings
from catalog_sync.logging_config import configure_logging
from catalog_sync.models.domain import SyncType
from catalog_sync.pipeline.category_matching import CategoryMatcher, CategoryTree
from catalog_sync.providers import HttpCatalogProvider, JsonFileProvider
from catalog_sync.repositories.base import (
    create_database_engine,
    create_session_factory,
    init_database,
    session_scope,
)
from catalog_sync.repositories.category_repository import CategoryRepository
from catalog_sync.services.catalog_sync import CatalogSyncService
from catalog_sync.services.sync_ledger import SyncRunLedger

console = Console()
logger = structlog.get_logger(__name__)

SYNC_OPERATIONS = {
    SyncType.CATEGORIES.value: "sync_categories",
    SyncType.MANUFACTURERS.value: "sync_manufacturers",
    SyncType.PARAMETERS.value: "sync_parameters",
    SyncType.PRODUCTS.value: "sync_products",
    SyncType.COMPLETE.value: "sync_complete",
}


def _open_database(ctx):
    """Engine and session factory for the configured (or overridden) database"""
    settings = ctx.obj["settings"]
    engine = create_database_engine(
        ctx.obj["database_url"] or settings.database.database_url,
        echo=settings.database.database_echo,
        pool_size=settings.database.database_pool_size,
        max_overflow=settings.database.database_max_overflow,
        pool_timeout=settings.database.database_pool_timeout,
        pool_recycle=settings.database.database_pool_recycle,
    )
    return engine, create_session_factory(engine)


@click.group()
@click.version_option(version=__version__, prog_name="Catalog Sync")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--database-url", envvar="CATALOG_SYNC_DATABASE_URL", help="Override DB_DATABASE_URL")
@click.pass_context
def cli(ctx, verbose, database_url):
    """
    Catalog Sync CLI

    Reconciles external provider catalogs into the canonical catalog.
    """
    settings = get_settings()
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["database_url"] = database_url
    ctx.obj["settings"] = settings

    configure_logging(
        "DEBUG" if verbose else settings.monitoring.log_level,
        settings.monitoring.log_format,
    )

    if verbose:
        console.print(f"[green]Catalog Sync CLI v{__version__}[/green]")


@cli.command()
@click.pass_context
def info(ctx):
    """Show application information and configuration"""
    try:
        console.print("[bold blue]Application Information[/bold blue]")

        info_data = get_environment_info()
        sync_info = info_data["sync"]

        table = Table(title="Configuration Status")
        table.add_column("Component", style="cyan", no_wrap=True)
        table.add_column("Status", style="green")
        table.add_column("Details", style="dim")

        table.add_row("Application", info_data["app_name"], f"v{info_data['app_version']}")
        table.add_row("Environment", info_data["environment"], "")
        table.add_row("Debug Mode", str(info_data["debug_mode"]), "")
        table.add_row("Database", info_data["database_backend"], "")
        table.add_row(
            "Provider",
            "✓ Configured" if info_data["provider_configured"] else "✗ Not configured",
            info_data["provider_name"],
        )
        table.add_row(
            "Sync",
            "✓ Enabled" if sync_info["enabled"] else "✗ Disabled",
            f"chunk {sync_info['chunk_size']}, flush every {sync_info['flush_every']}",
        )
        table.add_row(
            "Match Strategies",
            f"{len(sync_info['disabled_match_strategies'])} disabled",
            ", ".join(sync_info["disabled_match_strategies"]),
        )

        console.print(table)

        if ctx.obj["verbose"]:
            console.print("\n[bold]Full Configuration:[/bold]")
            console.print_json(json.dumps(info_data, indent=2))

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def validate(ctx):
    """Validate application configuration and database connectivity"""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Validating configuration...", total=None)

        try:
            validate_settings()
            progress.update(task, description="✓ Configuration valid")

            progress.update(task, description="Testing database connection...")
            engine, _ = _open_database(ctx)
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            engine.dispose()
            progress.update(task, description="✓ Database connection OK")

        except Exception as e:
            console.print(f"[red]✗ Validation failed: {e}[/red]")
            sys.exit(1)

    console.print("[green]✓ All validations passed![/green]")


@cli.command("init-db")
@click.pass_context
def init_db(ctx):
    """Create the catalog schema"""
    try:
        engine, _ = _open_database(ctx)
        init_database(engine)
        engine.dispose()
        console.print("[green]✓ Database schema initialized[/green]")
    except Exception as e:
        console.print(f"[red]Database initialization failed: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.argument("sync_type", type=click.Choice(list(SYNC_OPERATIONS)))
@click.option(
    "--source",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON dump to read provider data from",
)
@click.option("--provider-url", help="Provider API base URL (overrides PROVIDER_PROVIDER_BASE_URL)")
@click.option(
    "--category",
    "category_id",
    type=int,
    help="Only sync products of this canonical category id (products sync only)",
)
@click.pass_context
def sync(ctx, sync_type, source, provider_url, category_id):
    """Run a synchronization against a provider"""
    settings = ctx.obj["settings"]

    if category_id is not None and sync_type != SyncType.PRODUCTS.value:
        console.print("[red]--category is only supported for products sync[/red]")
        sys.exit(1)

    if not settings.sync.sync_enabled:
        console.print("[yellow]Synchronization is disabled (SYNC_SYNC_ENABLED=false)[/yellow]")
        sys.exit(1)

    if source and provider_url:
        console.print("[red]Use either --source or --provider-url, not both[/red]")
        sys.exit(1)

    try:
        if source:
            provider = JsonFileProvider(source, name=settings.provider.provider_name)
        elif provider_url:
            provider = HttpCatalogProvider(
                provider_url,
                timeout_seconds=settings.provider.provider_timeout_seconds,
                max_retries=settings.provider.provider_max_retries,
                name=settings.provider.provider_name,
            )
        else:
            provider = HttpCatalogProvider.from_settings(settings.provider)
    except Exception as e:
        console.print(f"[red]Provider error: {e}[/red]")
        sys.exit(1)

    console.print(f"[blue]Running {sync_type} sync from {provider.name} provider[/blue]")

    try:
        engine, session_factory = _open_database(ctx)
        init_database(engine)
        service = CatalogSyncService(session_factory, provider, settings.sync)
        if category_id is not None:
            counts = service.sync_products(category_id=category_id)
        else:
            counts = getattr(service, SYNC_OPERATIONS[sync_type])()
    except Exception as e:
        console.print(f"[red]Sync failed: {e}[/red]")
        sys.exit(1)
    finally:
        provider.close()

    table = Table(title=f"{sync_type.capitalize()} Sync")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Processed", str(counts.processed))
    table.add_row("Created", str(counts.created))
    table.add_row("Updated", str(counts.updated))
    table.add_row("Errors", str(counts.errors))
    table.add_row("Deferred", str(counts.deferred))
    console.print(table)
    engine.dispose()


@cli.command()
@click.option("--limit", default=20, help="Number of runs to show")
@click.option(
    "--type",
    "sync_type",
    type=click.Choice([t.value for t in SyncType]),
    help="Only show runs of this type",
)
@click.option(
    "--format",
    "output_format",
    default="table",
    type=click.Choice(["table", "json"]),
    help="Output format",
)
@click.pass_context
def runs(ctx, limit, sync_type, output_format):
    """Show recent sync runs"""
    try:
        engine, session_factory = _open_database(ctx)
        init_database(engine)
        recent = SyncRunLedger(session_factory).recent_runs(
            limit, SyncType(sync_type) if sync_type else None
        )
        engine.dispose()
    except Exception as e:
        console.print(f"[red]Error retrieving sync runs: {e}[/red]")
        sys.exit(1)

    if output_format == "json":
        console.print_json(json.dumps([run.model_dump(mode="json") for run in recent]))
        return

    table = Table(title="Sync Runs")
    table.add_column("ID", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Status")
    table.add_column("Processed", justify="right")
    table.add_column("Created", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Message", style="dim")

    status_styles = {"success": "green", "failed": "red", "in_progress": "yellow"}
    for run in recent:
        style = status_styles.get(run.status.value, "white")
        table.add_row(
            str(run.id),
            run.sync_type.value,
            f"[{style}]{run.status.value}[/{style}]",
            str(run.records_processed),
            str(run.records_created),
            str(run.records_updated),
            str(run.errors),
            f"{run.duration_ms}ms" if run.duration_ms is not None else "-",
            run.message or "",
        )

    console.print(table)


@cli.command()
@click.argument("level1")
@click.argument("level2", required=False)
@click.argument("level3", required=False)
@click.pass_context
def match(ctx, level1, level2, level3):
    """Reconcile category labels against the stored category tree"""
    settings = ctx.obj["settings"]

    try:
        engine, session_factory = _open_database(ctx)
        init_database(engine)
        with session_scope(session_factory) as session:
            categories = CategoryRepository(session).list_all()
        engine.dispose()
    except Exception as e:
        console.print(f"[red]Error loading categories: {e}[/red]")
        sys.exit(1)

    matcher = CategoryMatcher(
        CategoryTree(categories), disabled=settings.sync.disabled_match_strategies
    )
    result = matcher.match_labels(level1, level2, level3)

    if result.rejected_root:
        console.print(
            f"[yellow]Matched a root category via {result.strategy.value}; "
            "roots cannot hold products[/yellow]"
        )
        sys.exit(1)
    if result.category is None:
        console.print("[yellow]No matching category[/yellow]")
        sys.exit(1)

    table = Table(title="Category Match")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Strategy", result.strategy.value)
    table.add_row("Category ID", str(result.category.id))
    table.add_row("Name", result.category.name)
    table.add_row("Path", result.category.path or "")
    console.print(table)


@cli.command()
def version():
    """Show version information"""
    console.print(f"[bold green]Catalog Sync v{__version__}[/bold green]")
    console.print("[dim]External catalog reconciliation and synchronization engine[/dim]")


if __name__ == "__main__":
    cli()
