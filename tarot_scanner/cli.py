"""Command-line interface for the Tarot Scanner."""

import asyncio
from pathlib import Path
from typing import List, Optional

import cv2
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .capture.frames import CameraFrameSource
from .capture.overlay import camera_overlay
from .core.types import Card, Orientation, RecognitionResult, RecognitionStatus
from .match import LocalCaptureMatcher, MatcherCalibration
from .model.artifacts import ArtifactFetcher
from .model.export import write_bootstrap_model
from .model.inspector import ModelReadinessInspector
from .recognition import RecognitionOptions, RecognitionOrchestrator
from .store.captures import SqliteCaptureStore, import_captures
from .store.catalog import default_catalog, load_catalog
from .ui.notifier import notifier
from .utils.config import resolve_model_root, settings
from .utils.error_handler import TarotScannerError
from .utils.log import configure_logging, get_logger

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Rich console
console = Console()

app = typer.Typer(
    name="tarot-scanner",
    help="Tarot Card Scanner - recognize physical tarot cards from a camera",
    add_completion=False
)

CatalogOption = typer.Option(None, "--catalog", help="Card catalog JSON (defaults to CATALOG_PATH or the bundled deck)")
DbOption = typer.Option(None, "--db", help="Capture database path (defaults to CAPTURE_DB_PATH)")


def _catalog(path: Optional[Path]) -> List[Card]:
    return load_catalog(path) if path else default_catalog()


def _status_style(status: RecognitionStatus) -> str:
    if status in (RecognitionStatus.RUNNING, RecognitionStatus.RUNNING_LOCAL):
        return "green"
    if status is RecognitionStatus.NO_MODEL:
        return "yellow"
    return "red"


async def _inspect(model_url: str, metadata_url: str, expected: int):
    fetcher = ArtifactFetcher()
    try:
        return await ModelReadinessInspector(fetcher).inspect(model_url, metadata_url, expected)
    finally:
        await fetcher.close()


async def _verify(model_url: str, metadata_url: str, expected: int) -> List[str]:
    fetcher = ArtifactFetcher()
    try:
        return await ModelReadinessInspector(fetcher).verify(model_url, metadata_url, expected)
    finally:
        await fetcher.close()


@app.command()
def inspect(
    catalog: Optional[Path] = CatalogOption,
    model_url: str = typer.Option(settings.MODEL_URL, "--model-url", help="model.json URL or path"),
    metadata_url: str = typer.Option(settings.METADATA_URL, "--metadata-url", help="metadata.json URL or path"),
):
    """Inspect trained model artifacts without loading the network."""
    cards = _catalog(catalog)
    result = asyncio.run(_inspect(model_url, metadata_url, len(cards) * 2))
    diagnostics = result.diagnostics

    table = Table(title="Model Diagnostics")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Placeholder", str(diagnostics.placeholder))
    table.add_row("Format", diagnostics.format or "[red]unknown[/red]")
    table.add_row("Labels", str(diagnostics.labels_count))
    table.add_row("Output classes", str(diagnostics.output_classes) if diagnostics.output_classes else "[red]unknown[/red]")
    table.add_row("Expected classes", str(diagnostics.expected_classes))
    console.print(table)

    for warning in diagnostics.warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")

    if result.fatal_error:
        console.print(f"[red]❌ {result.fatal_error}[/red]")
        raise typer.Exit(1)
    console.print("[green]✓ Model artifacts are usable[/green]")


@app.command("verify-model")
def verify_model(
    catalog: Optional[Path] = CatalogOption,
    model_url: str = typer.Option(settings.MODEL_URL, "--model-url", help="model.json URL or path"),
    metadata_url: str = typer.Option(settings.METADATA_URL, "--metadata-url", help="metadata.json URL or path"),
):
    """Strict release check: a real trained model with one class per card and orientation."""
    expected = len(_catalog(catalog)) * 2
    failures = asyncio.run(_verify(model_url, metadata_url, expected))

    if failures:
        for failure in failures:
            console.print(f"[red]❌ {failure}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Model ready ({expected} classes, placeholder=false)[/green]")


@app.command("bootstrap-model")
def bootstrap_model(
    catalog: Optional[Path] = CatalogOption,
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o", help="Directory for the model files"),
):
    """Write the neutral placeholder model for the catalog."""
    cards = _catalog(catalog)
    directory = output_dir or resolve_model_root() / "model"
    model_path = write_bootstrap_model(cards, directory)
    console.print(f"[green]✓ Placeholder model written to {model_path.parent}[/green] ({len(cards) * 2} classes)")


@app.command("import-captures")
def import_captures_command(
    card_id: int = typer.Argument(..., help="Catalog id of the photographed card"),
    paths: List[Path] = typer.Argument(..., help="Image files or ZIP archives"),
    orientation: Optional[Orientation] = typer.Option(
        None, "--orientation", case_sensitive=False,
        help="Orientation of loose image files (inferred from names when omitted)",
    ),
    catalog: Optional[Path] = CatalogOption,
    db: Optional[Path] = DbOption,
):
    """Import reference photos of one card for the local matcher."""
    known_ids = {card.id for card in _catalog(catalog)}
    if card_id not in known_ids:
        console.print(f"[red]❌ Card id {card_id} is not in the catalog[/red]")
        raise typer.Exit(1)

    store = SqliteCaptureStore(str(db) if db else None)
    summary = import_captures(store, card_id, paths, orientation)

    table = Table(title=f"Card {card_id} Import")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Upright", str(summary.upright))
    table.add_row("Reversed", str(summary.reversed))
    table.add_row("Unknown orientation", str(summary.unknown_orientation))
    table.add_row("Errors", str(summary.errors))
    console.print(table)

    if summary.imported == 0:
        console.print("[yellow]⚠ Nothing imported - name files with vertical/invertido or pass --orientation[/yellow]")
        raise typer.Exit(1)


@app.command("matcher-stats")
def matcher_stats(
    catalog: Optional[Path] = CatalogOption,
    db: Optional[Path] = DbOption,
):
    """Load the local capture matcher and report what it can recognize."""
    cards = _catalog(catalog)
    matcher = LocalCaptureMatcher(
        SqliteCaptureStore(str(db) if db else None),
        calibration=MatcherCalibration.from_settings(settings),
        max_samples=settings.LOCAL_MAX_SAMPLES,
    )
    stats = asyncio.run(matcher.load(cards))

    table = Table(title="Local Matcher")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Capture records", str(stats.records))
    table.add_row("Usable cards", str(stats.cards_with_usable_candidates))
    table.add_row("Candidates", str(stats.candidate_count))
    table.add_row("Failed samples", str(stats.failed_sample_count))
    console.print(table)

    if not matcher.has_candidates():
        reason = matcher.unusable_reason() or "No local captures yet - use import-captures."
        console.print(f"[yellow]⚠ {reason}[/yellow]")


def _report_status(orchestrator: RecognitionOrchestrator) -> None:
    status = orchestrator.status
    console.print(f"[{_status_style(status)}]Status: {status.value}[/{_status_style(status)}]")
    if orchestrator.error:
        console.print(f"[yellow]⚠ {orchestrator.error}[/yellow]")
        notifier.status_toast(orchestrator.error, level="error" if status is RecognitionStatus.ERROR else "warning")


async def _run_loop(orchestrator: RecognitionOrchestrator, camera: CameraFrameSource, preview: bool) -> None:
    status = await orchestrator.load()
    _report_status(orchestrator)
    if status not in (RecognitionStatus.RUNNING, RecognitionStatus.RUNNING_LOCAL):
        raise typer.Exit(1)

    orchestrator.start()
    try:
        while True:
            await asyncio.sleep(0.03)
            if not preview:
                continue
            frame = camera.last_frame
            if frame is None:
                continue
            frame = camera_overlay.draw_viewfinder(frame, orchestrator.status)
            frame = camera_overlay.draw_status(frame, orchestrator.status, orchestrator.last_result)
            cv2.imshow("Tarot Scanner - ESC to exit, R to reset, L to reload", frame)
            key = cv2.waitKey(1) & 0xFF
            if key == 27:  # ESC
                break
            if key in (ord("r"), ord("R")):
                orchestrator.reset_confirmation()
                console.print("[dim]Confirmation reset[/dim]")
            if key in (ord("l"), ord("L")):
                await orchestrator.reload()
                _report_status(orchestrator)
    finally:
        await orchestrator.stop()


@app.command()
def run(
    catalog: Optional[Path] = CatalogOption,
    db: Optional[Path] = DbOption,
    camera_index: int = typer.Option(settings.CAMERA_INDEX, "--camera", help="Camera index"),
    reset_each: bool = typer.Option(False, "--reset-each", help="Reset confirmation after every recognized card"),
    preview: bool = typer.Option(True, "--preview/--no-preview", help="Show the camera preview window"),
):
    """Live recognition loop: confirm each card shown to the camera once."""
    console.print(Panel.fit(
        "[bold blue]Tarot Card Scanner - RUN Mode[/bold blue]\n"
        "[dim]camera → model or local captures → votes → confirmation[/dim]",
        border_style="blue"
    ))

    cards = _catalog(catalog)
    camera = CameraFrameSource(camera_index)
    position = 0

    def on_confirmed(result: RecognitionResult) -> None:
        nonlocal position
        position += 1
        orientation = "reversed" if result.is_reversed else "upright"
        console.print(
            f"[green]✓ {position}. {result.card.name}[/green] "
            f"({orientation}, {result.confidence:.2f}, {result.label})"
        )
        notifier.card_confirmed(result)
        if reset_each:
            orchestrator.reset_confirmation()

    orchestrator = RecognitionOrchestrator(
        cards,
        camera,
        store=SqliteCaptureStore(str(db) if db else None),
        options=RecognitionOptions(),
        on_confirmed=on_confirmed,
    )

    try:
        with console.status("[bold green]Opening camera...", spinner="dots"):
            camera.initialize()
        asyncio.run(_run_loop(orchestrator, camera, preview))
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠ Recognition interrupted by user[/yellow]")
    except TarotScannerError as e:
        console.print(f"\n[red]❌ {e.message}[/red]")
        logger.error("Recognition error", error=str(e))
        raise typer.Exit(1)
    finally:
        camera.release()
        if preview:
            cv2.destroyAllWindows()
        console.print(f"\n[bold]Session complete[/bold] - {position} card(s) confirmed")


if __name__ == "__main__":
    app()
