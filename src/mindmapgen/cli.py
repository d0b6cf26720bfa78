"""CLI entrypoints for the mind map generator."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from mindmapgen.api.serve import main as serve_main
from mindmapgen.config import load_settings
from mindmapgen.errors import AppError
from mindmapgen.logging import configure_logging, get_logger
from mindmapgen.models import Outcome
from mindmapgen.orchestrator.runner import ReportDeliveryError, create_service
from mindmapgen.tabular import read_report

app = typer.Typer(add_completion=False, help="Batch mind map generator CLI")
app.command("serve", help="Start the HTTP API server.")(serve_main)

logger = get_logger(__name__)
console = Console()


def _summary_table(report: list[Outcome], title: str) -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("Topic")
    table.add_column("Status")
    table.add_column("Error", overflow="fold")
    for i, outcome in enumerate(report, start=1):
        style = "green" if outcome.ok else "red"
        table.add_row(str(i), outcome.topic, f"[{style}]{outcome.status}[/{style}]", outcome.error or "")
    return table


def _print_summary(report: list[Outcome], title: str) -> None:
    console.print(_summary_table(report, title))
    succeeded = sum(1 for o in report if o.ok)
    console.print(f"{succeeded} succeeded, {len(report) - succeeded} failed, {len(report)} total")


@app.command()
def generate(
    input_path: Path | None = typer.Option(
        None, "--input", "-i", help="Input CSV with subject,topic columns (overrides MINDMAPGEN_INPUT_CSV_PATH)"
    ),
    output_path: Path | None = typer.Option(
        None, "--output", "-o", help="Report CSV (overrides MINDMAPGEN_OUTPUT_CSV_PATH)"
    ),
    max_concurrent: int | None = typer.Option(None, "--max-concurrent", "-c", min=1, help="Rows in flight"),
    batch_size: int | None = typer.Option(None, "--batch-size", "-b", min=1, help="Rows per checkpoint"),
) -> None:
    """Generate mind maps for every row of a CSV and write the report."""

    settings = load_settings()
    configure_logging(settings.log_level)

    input_path = input_path or settings.input_csv_path
    output_path = output_path or settings.output_csv_path
    logger.info("CLI generation requested", extra={"input_path": str(input_path)})

    async def _run() -> list[Outcome]:
        service = create_service(settings)
        await service.init()
        return await service.process_mind_maps(
            input_path,
            output_path,
            max_concurrent=max_concurrent or settings.max_concurrent,
            batch_size=batch_size or settings.batch_size,
        )

    try:
        report = asyncio.run(_run())
    except ReportDeliveryError as e:
        _print_summary(e.report, "Mind map generation (report not written)")
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=1) from e
    except AppError as e:
        console.print(f"[red]{e.name}: {e.message}[/red]")
        raise typer.Exit(code=1) from e

    _print_summary(report, "Mind map generation")
    typer.echo(str(output_path))


@app.command("list")
def list_mind_maps(
    limit: int = typer.Option(100, "--limit", "-n", min=1, help="Page size"),
    page_token: str | None = typer.Option(None, "--page-token", help="Continuation token from a previous page"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw page as JSON"),
) -> None:
    """List stored mind maps, one page at a time."""

    settings = load_settings()
    configure_logging(settings.log_level)

    async def _run():
        service = create_service(settings)
        return await service.get_all_mind_maps(page_token, limit)

    try:
        page = asyncio.run(_run())
    except AppError as e:
        console.print(f"[red]{e.name}: {e.message}[/red]")
        raise typer.Exit(code=1) from e

    if as_json:
        typer.echo(json.dumps(page.model_dump(mode="json", by_alias=True, exclude_none=True), indent=2))
        return

    table = Table(title="Mind maps")
    table.add_column("Subject")
    table.add_column("Topic")
    table.add_column("Root")
    table.add_column("Created")
    for m in page.items:
        table.add_row(m.subject, m.topic, m.root.text, m.created_at)
    console.print(table)
    if page.next_page_token:
        console.print(f"Next page token: {page.next_page_token}")


@app.command("report")
def show_report(path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Report or checkpoint CSV")) -> None:
    """Pretty-print a report or checkpoint file."""

    _print_summary(read_report(path), str(path))


if __name__ == "__main__":
    app()
