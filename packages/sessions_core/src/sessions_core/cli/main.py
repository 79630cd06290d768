"""
Sessions CLI

Command-line interface for the session commit runtime.

Commands:
- handlers: List registered event handlers and commit hooks
- init-db: Create the runtime tables
- process: Commit a batch of sessions read from a JSON file
"""

import json
from pathlib import Path

import typer
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.table import Table

app = typer.Typer(
    name="sessions-cli",
    help="Flow session commit runtime CLI",
)

console = Console()


def get_registry():
    """Build the startup registry."""
    from sessions_core.handlers import build_registry

    return build_registry()


@app.command()
def handlers():
    """
    List registered event handlers and commit hooks.
    """
    registry = get_registry()

    table = Table(title="Event Handlers")
    table.add_column("Event Type")
    table.add_column("Handler", style="dim")

    for event_type, handler in sorted(registry.event_types.items()):
        table.add_row(event_type, f"{handler.__module__}.{handler.__name__}")

    console.print(table)

    hooks_table = Table(title="Commit Hooks")
    hooks_table.add_column("Name")
    hooks_table.add_column("Class", style="dim")

    for name, hook in sorted(registry.hooks.items()):
        hooks_table.add_row(name, type(hook).__name__)

    console.print(hooks_table)


@app.command()
def init_db():
    """
    Create the runtime tables if they don't exist.
    """
    from flowbase.db import get_engine
    from sessions_core.persistence.models import RuntimeBase

    engine = get_engine()
    RuntimeBase.metadata.create_all(engine)
    rprint(f"[green]Created tables: {', '.join(sorted(RuntimeBase.metadata.tables))}[/green]")


@app.command()
def process(
    batch_file: Path = typer.Argument(..., help="JSON file with batch_id, org_id and sessions", exists=True),
):
    """
    Commit a batch of sessions read from a JSON file.

    The file uses the same shape as stream messages, with sessions as a list.
    """
    from pydantic import ValidationError

    from flowbase.db import get_sessionmaker
    from flowbase.redis import get_redis_client
    from sessions_core.committer import BatchCommitter, BatchContext
    from sessions_core.consumer import SessionBatch
    from sessions_core.contracts.assets import OrgAssets
    from sessions_core.exceptions import SessionsCoreError

    try:
        batch = SessionBatch.model_validate(json.loads(batch_file.read_text()))
    except (ValidationError, json.JSONDecodeError) as e:
        rprint(f"[red]Invalid batch file: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    committer = BatchCommitter(get_registry(), get_sessionmaker(), get_redis_client())

    try:
        result = committer.process_batch(
            batch.to_sessions(),
            OrgAssets(org_id=batch.org_id),
            BatchContext(batch_id=batch.batch_id),
        )
    except SessionsCoreError as e:
        rprint(f"[red]Batch failed: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"Batch {batch.batch_id}")
    table.add_column("Field")
    table.add_column("Value")
    for key, value in result.to_dict().items():
        table.add_row(key, ", ".join(value) if isinstance(value, list) else str(value))

    console.print(table)


if __name__ == "__main__":
    app()
