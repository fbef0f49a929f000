"""Mattress export CLI using Typer."""

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table
from typing_extensions import Annotated

from .config import AppSettings, Tables, get_settings
from .errors import AirtableAPIError, ConfigurationError
from .export_logging import configure_logging, get_logger

app = typer.Typer(help="Export the Airtable mattress archive to JSON and images")
console = Console()

DEFAULT_INSPECT_TABLES = [Tables.PHOTOGRAPHER.value, Tables.LOCATION.value]


def _bootstrap(**overrides: Any) -> AppSettings:
    """Load settings, apply command-line overrides and configure logging."""
    try:
        settings = get_settings()
    except ConfigurationError as e:
        typer.echo(f"❌ Invalid configuration: {e}", err=True)
        raise typer.Exit(1)

    updates = {k: v for k, v in overrides.items() if v is not None}
    if updates:
        settings = settings.model_copy(update=updates)

    configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    return settings


def describe_value(value: Any) -> str:
    """Short JSON type name of a field value."""
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    if value is None:
        return "null"
    return type(value).__name__


def _fields_table(title: str, fields: Dict[str, Any]) -> Table:
    table = Table(title=title)
    table.add_column("Field")
    table.add_column("Type")
    for name, value in fields.items():
        table.add_row(name, describe_value(value))
    return table


def _report_api_error(what: str, error: AirtableAPIError) -> None:
    typer.echo(f"❌ Error {what}:", err=True)
    if error.status_code is not None:
        typer.echo(f"   Status: {error.status_code}", err=True)
        typer.echo(f"   Response data: {error.body}", err=True)
    else:
        typer.echo(f"   {error}", err=True)


@app.command()
def export(
    output_dir: Annotated[Optional[Path], typer.Option("--output-dir", help="Root directory for exported files")] = None,
    api_delay: Annotated[Optional[float], typer.Option("--api-delay", min=0, help="Seconds to wait before each request")] = None,
    max_records: Annotated[Optional[int], typer.Option("--max-records", min=1, help="Only fetch this many mattress records")] = None,
):
    """Download all tables and images, then write the combined JSON file."""
    settings = _bootstrap(OUTPUT_DIR=output_dir, API_DELAY=api_delay, MATTRESS_MAX_RECORDS=max_records)
    logger = get_logger(__name__)

    try:
        result = asyncio.run(_run_export(settings))
    except Exception as e:
        logger.error("Error downloading data", error=str(e), exc_info=True)
        typer.echo(f"❌ Export failed: {e}", err=True)
        raise typer.Exit(1)

    typer.echo("\n📊 Export Summary:")
    for table, count in result["counts"].items():
        typer.echo(f"   {table}: {count} ({result['states'][table]})")
    if result["images"] is not None:
        images = result["images"]
        typer.echo(f"   images: {images.present}/{images.total} on disk, {images.missing} missing")
    typer.echo(f"\n🎉 Download complete! Data has been saved to {result['path']}")


async def _run_export(settings: AppSettings) -> Dict[str, Any]:
    """Execute the export and collect what the summary needs."""

    # Import orchestrator at runtime to keep CLI startup light
    from .io_clients import AirtableClient
    from .pipelines.export import ExportOrchestrator
    from .reporting import LoggingReporter

    async with AirtableClient.from_settings(settings) as client:
        orchestrator = ExportOrchestrator(
            client,
            output_dir=settings.OUTPUT_DIR,
            max_records=settings.max_records,
            reporter=LoggingReporter(),
        )
        dataset = await orchestrator.run()
        path = orchestrator.write_combined(dataset)

    return {
        "path": path,
        "counts": {
            Tables.MATTRESSES.value: len(dataset.all_matresses),
            Tables.PHOTOGRAPHER.value: len(dataset.photographer),
            Tables.LOCATION.value: len(dataset.location),
        },
        "states": {table: state.value for table, state in orchestrator.states.items()},
        "images": orchestrator.image_summary,
    }


@app.command("check-access")
def check_access():
    """List the tables of the configured base."""
    settings = _bootstrap()
    typer.echo("Checking Airtable access...")
    typer.echo(f"Base ID: {settings.BASE_ID}")
    typer.echo(f"API Key: {settings.masked_api_key()}")

    try:
        tables = asyncio.run(_list_tables(settings))
    except AirtableAPIError as e:
        _report_api_error("accessing Airtable", e)
        raise typer.Exit(1)

    typer.echo("✅ Success! Tables in this base:")
    for table in tables:
        typer.echo(f"- {table.get('name')} (ID: {table.get('id')})")


async def _list_tables(settings: AppSettings) -> List[Dict[str, Any]]:
    from .io_clients import AirtableClient

    async with AirtableClient.from_settings(settings, request_delay=0) as client:
        return await client.list_tables()


@app.command("inspect-tables")
def inspect_tables(
    tables: Annotated[Optional[List[str]], typer.Argument(help="Tables to sample")] = None,
):
    """Print the fields of one sample record per table."""
    settings = _bootstrap()
    failed = False

    for i, table in enumerate(tables or DEFAULT_INSPECT_TABLES):
        if i:
            typer.echo("\n----------------------------\n")
        typer.echo(f"Fetching a sample record from {table}...")
        try:
            record = asyncio.run(_sample_record(settings, table))
        except AirtableAPIError as e:
            _report_api_error(f"inspecting {table}", e)
            failed = True
            continue

        if record is None:
            typer.echo(f"No records found in {table}")
            continue

        typer.echo(f"Record ID: {record.id}")
        console.print_json(data=record.fields)
        console.print(_fields_table(f"Available fields in {table}", record.fields))

    if failed:
        raise typer.Exit(1)


@app.command("inspect-images")
def inspect_images(
    table: Annotated[str, typer.Option(help="Table holding the image attachments")] = Tables.MATTRESSES.value,
    field: Annotated[str, typer.Option(help="Attachment field to look at")] = "images",
):
    """Show how the image field of a sample record looks."""
    settings = _bootstrap()
    typer.echo("Fetching a sample mattress record to debug image field...")

    try:
        record = asyncio.run(_sample_record(settings, table))
    except AirtableAPIError as e:
        _report_api_error("debugging image field", e)
        raise typer.Exit(1)

    if record is None:
        typer.echo("No records found")
        return

    typer.echo(f"Record ID: {record.id}")
    if field in record.fields:
        value = record.fields[field]
        typer.echo(f"✅ Field '{field}' exists!")
        typer.echo(f"Type: {describe_value(value)}")
        console.print_json(data=value)
    else:
        typer.echo(f"No '{field}' field found in the record")
        console.print(_fields_table("Available fields", record.fields))


async def _sample_record(settings: AppSettings, table: str):
    from .io_clients import AirtableClient

    async with AirtableClient.from_settings(settings, request_delay=0) as client:
        return await client.sample_record(table)


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    app()
