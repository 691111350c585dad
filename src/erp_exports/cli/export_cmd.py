"""Export CLI commands: start, track, list and download ERP report exports."""

import asyncio
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

if TYPE_CHECKING:
    from erp_exports.lib.export_jobs import ExportParams

export_app = typer.Typer()

# Filter values the UI uses to mean "no filter"
_ANY_VALUES = {"all", "both"}


def _optional_filter(value: str | None) -> str | None:
    if value is None or value.strip().lower() in _ANY_VALUES:
        return None
    return value


def _parse_date(value: str | None, option: str) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        typer.echo(f"Error: {option} must be a date (YYYY-MM-DD), got {value!r}", err=True)
        raise typer.Exit(code=1) from e


@export_app.command("run")
def export_run(
    output_format: Annotated[str, typer.Option("--format", help="Output format (csv, excel, pdf)")] = "excel",
    account: Annotated[str | None, typer.Option("--account", help="Filter by account ID (transactions)")] = None,
    transaction_type: Annotated[
        str | None,
        typer.Option("--type", help="Filter by transaction type: Credit, Debit (transactions)"),
    ] = None,
    vendor: Annotated[str | None, typer.Option("--vendor", help="Filter by vendor ID (products)")] = None,
    category: Annotated[str | None, typer.Option("--category", help="Filter by category ID (products)")] = None,
    from_date: Annotated[str | None, typer.Option("--from", help="Start date (YYYY-MM-DD)")] = None,
    to_date: Annotated[str | None, typer.Option("--to", help="End date (YYYY-MM-DD)")] = None,
    resource_name: Annotated[str, typer.Option("--resource", help="Resource: transactions, products")] = "transactions",
    wait: Annotated[bool, typer.Option("--wait/--no-wait", help="Wait for background exports to finish")] = True,
    timeout: Annotated[float | None, typer.Option("--timeout", help="Seconds to wait before giving up")] = None,
    output: Annotated[Path | None, typer.Option("--output", help="Output directory")] = None,
) -> None:
    """Start an export and save the resulting file."""
    from erp_exports.core.errors import InvalidExportRequest
    from erp_exports.lib.export_jobs import RESOURCES, DateRange, ExportParams

    if resource_name not in RESOURCES:
        typer.echo(f"Error: Unknown resource {resource_name!r}. Supported: {list(RESOURCES)}", err=True)
        raise typer.Exit(code=1)

    try:
        date_range = DateRange(_parse_date(from_date, "--from"), _parse_date(to_date, "--to"))
        params = ExportParams(
            format=output_format,
            entity_filters={
                "account_id": _optional_filter(account),
                "transaction_type": _optional_filter(transaction_type),
                "vendor_id": _optional_filter(vendor),
                "category_id": _optional_filter(category),
            },
            date_range=date_range,
        )
        params.normalized_filters(RESOURCES[resource_name])
    except InvalidExportRequest as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(code=1) from e

    asyncio.run(_export_run(params, resource_name, wait, timeout, output))


async def _export_run(
    params: "ExportParams",
    resource_name: str,
    wait: bool,
    timeout: float | None,
    output_dir: Path | None,
) -> None:
    """Async implementation of export run."""
    from erp_exports.core.config import get_settings
    from erp_exports.core.errors import ExportError
    from erp_exports.lib.export_jobs import ExportJob, JobStatus, get_resource
    from erp_exports.services.export_service import create_export_service

    service = create_export_service(get_settings())

    def echo_progress(job: ExportJob) -> None:
        if job.status == JobStatus.STARTED and job.progress is not None:
            typer.echo(f"  {job.task_id}: {job.progress.percent}% ({job.progress.current}/{job.progress.total})")

    unsubscribe = service.bridge.subscribe(echo_progress)
    try:
        job = await service.start_export(params, get_resource(resource_name))
        typer.echo(f"Export job: {job.task_id}")
        typer.echo(f"Format:     {job.format}")

        if not job.is_terminal:
            if not wait:
                typer.echo(f"Status:     {job.status}")
                typer.echo("Check progress with: erp-exports export status " + job.task_id)
                return
            typer.echo("Waiting for the export to finish...")
            job = await service.wait_for(job.task_id, timeout=timeout)

        path = await service.download(job, output_dir)
        typer.echo(f"\nExport completed: {path}")
    except TimeoutError as e:
        typer.echo(f"Error: Export did not finish within {timeout} seconds", err=True)
        raise typer.Exit(code=1) from e
    except ExportError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(code=1) from e
    finally:
        unsubscribe()
        await service.aclose()


@export_app.command("status")
def export_status(
    task_id: Annotated[str, typer.Argument(help="Task ID returned when the export was started")],
    resource_name: Annotated[str, typer.Option("--resource", help="Resource: transactions, products")] = "transactions",
) -> None:
    """Show the current status of a background export."""
    asyncio.run(_export_status(task_id, resource_name))


async def _export_status(task_id: str, resource_name: str) -> None:
    """Async implementation of export status."""
    from erp_exports.core.config import get_settings
    from erp_exports.core.errors import ExportError
    from erp_exports.lib.export_jobs import RESOURCES
    from erp_exports.services.export_service import create_export_service

    if resource_name not in RESOURCES:
        typer.echo(f"Error: Unknown resource {resource_name!r}. Supported: {list(RESOURCES)}", err=True)
        raise typer.Exit(code=1)

    service = create_export_service(get_settings())
    try:
        payload = await service.fetch_status(task_id, RESOURCES[resource_name])
    except ExportError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(code=1) from e
    finally:
        await service.aclose()

    typer.echo(f"Task:    {task_id}")
    typer.echo(f"Status:  {payload.get('status', 'UNKNOWN')}")
    info = payload.get("info")
    if isinstance(info, dict) and "current" in info and "total" in info:
        typer.echo(f"Progress: {info['current']}/{info['total']}")
    result = payload.get("result")
    if isinstance(result, dict) and result.get("file_path"):
        typer.echo(f"File:    {result['file_path']}")


@export_app.command("history")
def export_history(
    status_filter: Annotated[str | None, typer.Option("--status", help="Filter by status")] = None,
    output_format: Annotated[str | None, typer.Option("--format", help="Filter by format")] = None,
    limit: Annotated[int, typer.Option("--limit", help="Maximum entries to show")] = 20,
) -> None:
    """List recent exports recorded by the backend."""
    asyncio.run(_export_history(status_filter, output_format, limit))


async def _export_history(status_filter: str | None, output_format: str | None, limit: int) -> None:
    """Async implementation of export history."""
    from erp_exports.core.config import get_settings
    from erp_exports.core.errors import ExportError
    from erp_exports.services.export_service import create_export_service

    service = create_export_service(get_settings())
    try:
        entries = await service.history(status=status_filter, export_format=output_format, limit=limit)
    except ExportError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(code=1) from e
    finally:
        await service.aclose()

    if not entries:
        typer.echo("No exports found.")
        return

    for entry in entries:
        task_id = entry.get("task_id") or entry.get("id", "-")
        typer.echo(
            f"{task_id}  {entry.get('format', '-'):<6} {entry.get('status', '-'):<8} "
            f"{entry.get('created_at', '-')}  {entry.get('file_path') or ''}"
        )


@export_app.command("download")
def export_download(
    file_path: Annotated[str, typer.Argument(help="Server file path or URL of a completed export")],
    output_format: Annotated[str, typer.Option("--format", help="Format, used to name the file")] = "excel",
    output: Annotated[Path | None, typer.Option("--output", help="Output directory")] = None,
) -> None:
    """Download a completed export file."""
    asyncio.run(_export_download(file_path, output_format, output))


async def _export_download(file_path: str, output_format: str, output_dir: Path | None) -> None:
    """Async implementation of export download."""
    from erp_exports.core.config import get_settings
    from erp_exports.core.errors import ExportError
    from erp_exports.lib.export_jobs import TRANSACTIONS, ExportFormat, derive_file_name
    from erp_exports.services.export_service import create_export_service

    try:
        export_format = ExportFormat(output_format.lower())
    except ValueError as e:
        typer.echo(f"Error: Unsupported format: {output_format}", err=True)
        raise typer.Exit(code=1) from e

    settings = get_settings()
    service = create_export_service(settings)
    file_name = derive_file_name(file_path, export_format, TRANSACTIONS.default_stem)
    try:
        path = await service.client.download_file(file_path, output_dir or Path(settings.export_dir), file_name)
    except ExportError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(code=1) from e
    finally:
        await service.aclose()

    typer.echo(f"Downloaded: {path}")
