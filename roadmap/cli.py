"""Command-line interface for document roadmap segmentation."""

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from roadmap.config.logging import configure_logging
from roadmap.config.settings import get_settings
from roadmap.errors import StorageUnavailable
from roadmap.pipeline.service import SegmentationService
from roadmap.storage.documents import InvalidUpload, LocalDocumentStore

app = typer.Typer(
    name="roadmap",
    help="Turn uploaded documents into ordered learning roadmaps",
    add_completion=False,
)
console = Console()

OwnerOption = typer.Option(..., "--owner", "-u", help="Owner (user) identifier")
JsonOption = typer.Option(False, "--json", help="Print the raw response envelope")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    settings = get_settings()
    configure_logging("DEBUG" if verbose else settings.log_level, json_output=settings.log_json)


def _print_envelope(envelope: dict, as_json: bool) -> None:
    if as_json:
        console.print_json(json.dumps(envelope, ensure_ascii=False))
        return

    if not envelope.get("success"):
        console.print(f"[red]Error:[/red] {envelope.get('error')}")
        if envelope.get("message"):
            console.print(f"[dim]{envelope['message']}[/dim]")
        return

    console.print(f"[green]{envelope.get('message', 'OK')}[/green]")
    if envelope.get("warning"):
        console.print(f"[yellow]Warning:[/yellow] {envelope['warning']}")

    data = envelope.get("data")
    if data:
        _display_roadmap(data)


def _display_roadmap(data: dict) -> None:
    console.print(
        Panel.fit(
            f"[bold blue]{data['title']}[/bold blue]\n{data['overview']}",
            border_style="blue",
        )
    )

    table = Table(title=f"Learning Roadmap ({data['totalSegments']} segments)")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Topic", style="bold")
    table.add_column("Difficulty")
    table.add_column("Time", style="green")
    table.add_column("Key Points")

    for segment in data["segments"]:
        table.add_row(
            str(segment["id"]),
            segment["title"],
            segment["difficulty"],
            segment["estimatedTime"],
            "\n".join(segment["keyPoints"]),
        )

    console.print(table)
    console.print(
        f"[dim]Estimated total time:[/dim] {data['estimatedTime']}   "
        f"[dim]Method:[/dim] {data['method']}   "
        f"[dim]Cost:[/dim] {data['cost']}"
    )


@app.command()
def ingest(
    pdf_path: Path = typer.Argument(
        ...,
        help="PDF file to add to the document store",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
) -> None:
    """Store a PDF and print its document id."""
    store = LocalDocumentStore(get_settings().storage_dir)

    try:
        document_id = asyncio.run(store.put_bytes(pdf_path.read_bytes(), pdf_path.name))
    except (InvalidUpload, StorageUnavailable) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(f"[green]Stored as:[/green] {document_id}")


@app.command()
def segment(
    document_id: str = typer.Argument(..., help="Stored document id"),
    owner: str = OwnerOption,
    as_json: bool = JsonOption,
) -> None:
    """Segment a stored document, serving the cached roadmap when present."""
    service = SegmentationService.from_settings()
    envelope = asyncio.run(service.segment(document_id, owner)).to_dict()
    _print_envelope(envelope, as_json)
    if not envelope["success"]:
        raise typer.Exit(code=1)


@app.command()
def show(
    document_id: str = typer.Argument(..., help="Stored document id"),
    owner: str = OwnerOption,
    as_json: bool = JsonOption,
) -> None:
    """Show an existing roadmap without computing one."""
    service = SegmentationService.from_settings()
    envelope = asyncio.run(service.get_segments(document_id, owner)).to_dict()
    _print_envelope(envelope, as_json)
    if not envelope["success"]:
        raise typer.Exit(code=1)


@app.command()
def delete(
    document_id: str = typer.Argument(..., help="Stored document id"),
    owner: str = OwnerOption,
    as_json: bool = JsonOption,
) -> None:
    """Delete a roadmap so the document can be segmented again."""
    service = SegmentationService.from_settings()
    envelope = asyncio.run(service.delete_segments(document_id, owner)).to_dict()
    _print_envelope(envelope, as_json)
    if not envelope["success"]:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
