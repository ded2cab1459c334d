"""Command-line interface for Journal RAG."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .config.logging import setup_logging
from .config.settings import Settings
from .core.exceptions import JournalRAGError
from .models.metrics import HealthStatus
from .rag.service import RAGService
from .utils.date_utils import format_duration

app = typer.Typer(
    name="journal-rag",
    help="Journal RAG - retrieval-augmented context for journaling and goal coaching",
    add_completion=False,
)
console = Console()


def _load_settings(debug: bool = False, source: Optional[Path] = None) -> Settings:
    settings = Settings()
    if debug:
        settings.DEBUG = True
        settings.LOG_LEVEL = "DEBUG"
    if source:
        settings.MIGRATION_SOURCE_PATH = source
    settings.validate_runtime()
    settings.create_directories()
    setup_logging(settings)
    return settings


async def _with_service(settings: Settings, func):
    service = RAGService(settings)
    await service.initialize()
    try:
        return await func(service)
    finally:
        await service.close()


@app.command("serve")
def run_server(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Host to bind to"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to bind to"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug mode"),
) -> None:
    """Start the HTTP server."""
    from .core.server import JournalRAGServer

    try:
        settings = Settings()
        if debug:
            settings.DEBUG = True
            settings.LOG_LEVEL = "DEBUG"
        if host:
            settings.SERVER_HOST = host
        if port:
            settings.SERVER_PORT = port

        console.print(
            f"[green]Starting Journal RAG server on {settings.SERVER_HOST}:{settings.SERVER_PORT}[/green]"
        )
        server = JournalRAGServer(settings)
        asyncio.run(server.start())

    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped by user[/yellow]")
    except Exception as e:
        console.print(f"[red]Error starting server: {e}[/red]")
        sys.exit(1)


@app.command("migrate")
def migrate(
    user_id: Optional[str] = typer.Option(None, "--user-id", "-u", help="Migrate a single user"),
    all_users: bool = typer.Option(False, "--all-users", help="Migrate every user in the source"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Only estimate what would be embedded"),
    source: Optional[Path] = typer.Option(
        None, "--source", "-s", help="JSON content export (overrides MIGRATION_SOURCE_PATH)"
    ),
) -> None:
    """Backfill embeddings for historical content."""
    if bool(user_id) == all_users:
        console.print("[red]Specify exactly one of --user-id or --all-users[/red]")
        raise typer.Exit(code=2)

    settings = _load_settings(source=source)
    if not settings.MIGRATION_SOURCE_PATH:
        console.print("[red]No content source: pass --source or set MIGRATION_SOURCE_PATH[/red]")
        raise typer.Exit(code=2)

    async def _run(service: RAGService):
        if service.migration is None:
            raise JournalRAGError("Migration is unavailable while RAG is disabled")
        if dry_run:
            return await service.migration.dry_run(user_id)
        if all_users:
            return await service.migration.migrate_all_users()
        return await service.migrate_existing_content(user_id)

    try:
        outcome = asyncio.run(_with_service(settings, _run))
    except JournalRAGError as e:
        console.print(f"[red]Migration failed: {e}[/red]")
        sys.exit(1)

    if dry_run:
        table = Table(title="Migration dry run")
        table.add_column("User")
        table.add_column("Items", justify="right")
        table.add_column("Already embedded", justify="right")
        table.add_column("Pending", justify="right")
        for estimate in outcome.users:
            table.add_row(
                estimate.user_id,
                str(estimate.total_items),
                str(estimate.already_embedded),
                str(estimate.pending_items),
            )
        console.print(table)
        console.print(
            f"Projected duration: [cyan]{format_duration(outcome.estimated_duration_seconds)}[/cyan]"
        )
        return

    console.print_json(outcome.model_dump_json())


@app.command("health")
def health() -> None:
    """Run the pipeline health check once."""
    settings = _load_settings()
    report = asyncio.run(_with_service(settings, lambda service: service.health_check()))

    colour = {
        HealthStatus.HEALTHY: "green",
        HealthStatus.DEGRADED: "yellow",
        HealthStatus.UNHEALTHY: "red",
    }[report.status]
    console.print(f"Status: [{colour}]{report.status.value}[/{colour}]")

    table = Table()
    table.add_column("Stage")
    table.add_column("Status")
    table.add_column("Latency (ms)", justify="right")
    table.add_column("Error")
    for stage in report.stages:
        table.add_row(stage.name, stage.status.value, f"{stage.latency_ms:.1f}", stage.error or "")
    console.print(table)

    if report.status == HealthStatus.UNHEALTHY:
        raise typer.Exit(code=1)


@app.command("metrics")
def metrics() -> None:
    """Print metrics and queue statistics as JSON."""
    settings = _load_settings()

    async def _collect(service: RAGService):
        return {
            "metrics": service.get_metrics().model_dump(mode="json"),
            "queue": service.get_queue_stats().model_dump(mode="json"),
            "store": (await service.vector_store.get_stats()).model_dump(mode="json")
            if settings.RAG_ENABLED
            else None,
        }

    console.print_json(json.dumps(asyncio.run(_with_service(settings, _collect))))


@app.command("init")
def init_project(
    directory: Path = typer.Argument(Path("."), help="Directory to initialize"),
    force: bool = typer.Option(False, "--force", help="Overwrite existing files"),
) -> None:
    """Write a starter .env and create the data directory."""
    directory = directory.resolve()
    directory.mkdir(parents=True, exist_ok=True)

    config_file = directory / ".env"
    data_dir = directory / "data"

    if config_file.exists() and not force:
        console.print(f"[yellow]Configuration file already exists: {config_file}[/yellow]")
        console.print("Use --force to overwrite")
        return

    data_dir.mkdir(exist_ok=True)

    config_content = """# Journal RAG Configuration
SERVER_HOST=localhost
SERVER_PORT=8000
DEBUG=false
LOG_LEVEL=INFO

# Storage
SQLITE_DATABASE_PATH=./data/journal_rag.db
REDIS_URL=redis://localhost:6379/0
REDIS_ENABLED=false

# Embeddings (api, local or hash)
EMBEDDING_PROVIDER=api
EMBEDDING_MODEL=text-embedding-004
EMBEDDING_DIMENSIONS=768
EMBEDDING_API_BASE=http://localhost:4000
# EMBEDDING_API_KEY=

# Retrieval
RAG_ENABLED=true
RAG_SIMILARITY_THRESHOLD=0.7
RAG_MAX_RETRIEVED_DOCS=5

# Migration
# MIGRATION_SOURCE_PATH=./data/export.json
"""

    config_file.write_text(config_content)
    console.print(f"[green]Initialized Journal RAG project in {directory}[/green]")
    console.print(f"Configuration file: {config_file}")
    console.print(f"Data directory: {data_dir}")


@app.command("version")
def show_version() -> None:
    """Show version information."""
    from . import __version__
    console.print(f"Journal RAG version {__version__}")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
