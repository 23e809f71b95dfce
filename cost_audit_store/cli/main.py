"""
CLI interface for the collector event store.

Provides command-line access to index provisioning, document writes and
the three read views.
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from cost_audit_store.config.loader import AppConfig, load_config
from cost_audit_store.core.logging import configure_logging
from cost_audit_store.storage.client import StoreConnectionError, connect
from cost_audit_store.storage.repository import QueryError, StorageManager

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

DEFAULT_CONFIG_PATH = "config.yaml"

ConfigOption = typer.Option(
    DEFAULT_CONFIG_PATH,
    "--config",
    "-c",
    help="Path to the YAML configuration file"
)


def _load(config_path: str) -> AppConfig:
    """Load configuration or exit with a readable error."""
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Configuration error:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)
    configure_logging(config.log_level)
    return config


def get_storage(config: AppConfig, provision: bool = False) -> StorageManager:
    """Connect to the configured store."""
    es_config = config.elasticsearch
    if provision:
        return StorageManager.from_config(es_config)
    return StorageManager(connect(es_config), es_config.index)


def _parse_filters(values: Optional[List[str]]) -> dict:
    filters = {}
    for value in values or []:
        key, sep, val = value.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"filter must be key=value, got {value!r}")
        filters[key] = val
    return filters


def _format_currency(amount: float) -> str:
    return f"${amount:,.2f}"


def _format_time(seconds: int) -> str:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    except (OverflowError, OSError, ValueError):
        return str(seconds)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Collector event store CLI."""
    if ctx.invoked_subcommand is None:
        console.print("Collector event store - Use --help to see available commands")


@app.command()
def init(config_path: str = ConfigOption):
    """Create the event index with its keyword mapping."""
    config = _load(config_path)
    try:
        storage = get_storage(config)
    except StoreConnectionError as e:
        console.print(f"[red]Error connecting to store:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    if not storage.create_index():
        console.print(f"[red]Could not create index[/] {config.elasticsearch.index}")
        sys.exit(EXIT_CODE_FAIL)
    console.print(f"[green]✓[/] Index {config.elasticsearch.index} is ready")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def save(
    path: Path = typer.Argument(..., help="JSON file holding one document or a list"),
    config_path: str = ConfigOption,
):
    """Write event documents from a JSON file."""
    config = _load(config_path)
    try:
        documents = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        console.print(f"[red]Could not read documents:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)
    if isinstance(documents, dict):
        documents = [documents]

    try:
        storage = get_storage(config, provision=True)
    except StoreConnectionError as e:
        console.print(f"[red]Error connecting to store:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    failed = sum(1 for document in documents if not storage.save(document))
    saved = len(documents) - failed
    console.print(f"Saved {saved} document(s), {failed} failed")
    sys.exit(EXIT_CODE_FAIL if failed else EXIT_CODE_PASS)


@app.command()
def summary(
    execution_id: str = typer.Argument(..., help="Collector execution identifier"),
    filter_: Optional[List[str]] = typer.Option(
        None,
        "--filter",
        "-f",
        help="Extra key=value filter for the cost aggregation (repeatable)"
    ),
    config_path: str = ConfigOption,
):
    """Show latest status and cost per resource for an execution."""
    filters = _parse_filters(filter_)
    config = _load(config_path)
    try:
        rows = get_storage(config).get_summary(execution_id, filters)
    except (StoreConnectionError, QueryError) as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    if not rows:
        console.print(f"\n[bold yellow]No status events found for {execution_id}[/]\n")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title=f"Execution {execution_id}")
    table.add_column("Resource")
    table.add_column("Status")
    table.add_column("Resources", justify="right")
    table.add_column("Monthly spend", justify="right")
    table.add_column("Error")
    for name in sorted(rows):
        row = rows[name]
        table.add_row(
            name,
            str(row.status),
            str(row.resource_count),
            _format_currency(row.total_spent),
            row.error_message or "",
        )
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def executions(
    limit: int = typer.Option(20, "--limit", "-l", min=1, help="Maximum executions to list"),
    config_path: str = ConfigOption,
):
    """List collector executions, most recent first."""
    config = _load(config_path)
    try:
        records = get_storage(config).get_executions(limit)
    except StoreConnectionError as e:
        console.print(f"[red]Error connecting to store:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    if not records:
        console.print("\n[bold yellow]No collector executions found[/]\n")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title="Collector executions")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Time")
    for record in records:
        table.add_row(record.id, record.name, _format_time(record.time))
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def resources(
    resource_type: str = typer.Argument(..., help="Resource name, e.g. ec2"),
    execution_id: str = typer.Argument(..., help="Collector execution identifier"),
    config_path: str = ConfigOption,
):
    """Print raw detected-resource documents as JSON lines."""
    config = _load(config_path)
    try:
        documents = get_storage(config).get_resources(resource_type, execution_id)
    except (StoreConnectionError, QueryError) as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    for document in documents:
        typer.echo(json.dumps(document, sort_keys=True))
    sys.exit(EXIT_CODE_PASS)


if __name__ == "__main__":
    app()
