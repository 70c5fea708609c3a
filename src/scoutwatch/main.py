from __future__ import annotations

import threading
from pathlib import Path
from typing import Optional

import typer
import uvicorn
import yaml

from scoutwatch.config import settings
from scoutwatch.data.persistence import FormPersister
from scoutwatch.data.review import ReviewService
from scoutwatch.data.storage import Database
from scoutwatch.domain.models import Item
from scoutwatch.exceptions import ConfigError, ScoutWatchError, VolumeNotFound
from scoutwatch.ingest.backup import BackupWriter
from scoutwatch.ingest.pipeline import IngestionPipeline
from scoutwatch.ingest.volumes import MountRootVolumeLocator
from scoutwatch.ingest.watcher import DirectoryWatcher, TERMINAL_STATES, WatcherState
from scoutwatch.logs import OperatorLog, configure_logging

cli = typer.Typer(help="ScoutWatch CLI (tablet file ingestion and review)")


def _database() -> Database:
    return Database(settings.paths.db_path, timeout=settings.store.connect_timeout_seconds)


def _pipeline(db: Database, with_backup: bool) -> IngestionPipeline:
    backup = BackupWriter(MountRootVolumeLocator()) if with_backup and settings.backup.enabled else None
    return IngestionPipeline(FormPersister(db), backup=backup)


def load_items(path: Path) -> list[Item]:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot load item catalog from {path}: {exc}") from exc
    return [Item(**entry) for entry in data.get("items", [])]


@cli.command()
def version() -> None:
    """Print runtime version."""
    typer.echo(f"ScoutWatch {settings.app.version}")


@cli.command()
def watch(
    directory: Optional[Path] = typer.Option(None, help="Directory to watch (defaults to paths.watch_dir)"),
    backup: bool = typer.Option(True, help="Copy each file to a removable volume"),
) -> None:
    """Watch a directory and ingest every new tablet file."""
    configure_logging()
    target = directory or settings.paths.watch_dir
    cancel = threading.Event()
    with OperatorLog() as operator_log:
        watcher = DirectoryWatcher(target, _pipeline(_database(), backup), cancel=cancel)
        try:
            state = watcher.run()
        except KeyboardInterrupt:
            cancel.set()
            state = WatcherState.STOPPED
        if state in TERMINAL_STATES and state is not WatcherState.STOPPED:
            typer.echo(operator_log.render(), err=True)
            raise typer.Exit(code=1)


@cli.command("import-usb")
def import_usb(
    timeout: float = typer.Option(settings.usb.timeout_seconds, help="Seconds to wait for a removable volume"),
) -> None:
    """Ingest every tablet file found on a removable volume."""
    configure_logging()
    pipeline = _pipeline(_database(), with_backup=False)
    try:
        reports = pipeline.import_volume(MountRootVolumeLocator(), timeout=timeout)
    except VolumeNotFound as exc:
        typer.echo(f"No removable volume: {exc}", err=True)
        raise typer.Exit(code=1)
    stored = sum(r.forms_stored for r in reports)
    typer.echo(f"{len(reports)} files, {stored} forms stored")


@cli.command()
def reconstruct(
    team: int = typer.Option(..., prompt="Team number"),
    form_type: int = typer.Option(settings.review.reconstruct_form_type, help="Form type ordinal"),
) -> None:
    """Print the raw protocol text of a team's latest form."""
    text = ReviewService(_database()).reconstruct(team, form_type)
    if text is None:
        typer.echo(f"No form stored for team {team}", err=True)
        raise typer.Exit(code=1)
    typer.echo(text)


@cli.command()
def summarize(team: int = typer.Option(..., prompt="Team number")) -> None:
    """Print per-item summary statistics for a team."""
    typer.echo(ReviewService(_database()).summarize(team))


@cli.command()
def comments(team: int = typer.Option(..., prompt="Team number")) -> None:
    """Print free-text comments recorded for a team."""
    typer.echo(ReviewService(_database()).render_comments(team))


@cli.command("init-db")
def init_db(
    items: Optional[Path] = typer.Option(None, help="Item catalog YAML (defaults to paths.items_path)"),
) -> None:
    """Create the store schema and register the item catalog."""
    configure_logging()
    db = _database()
    catalog = items or settings.paths.items_path
    registered = 0
    if Path(catalog).exists():
        try:
            for item in load_items(catalog):
                db.register_item(item)
                registered += 1
        except ScoutWatchError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=1)
    typer.echo(f"Database initialized at: {db.db_path.resolve()} ({registered} items)")


@cli.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host to bind"),
    port: int = typer.Option(8000, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable autoreload for local development"),
) -> None:
    """Run the review API server."""
    configure_logging()
    uvicorn.run(
        "scoutwatch.api.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    cli()
