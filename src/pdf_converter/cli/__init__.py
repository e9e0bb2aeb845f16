from __future__ import annotations

from enum import Enum
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from ..config import AppConfig, dump_config, load_config
from ..core import ConversionService
from ..detection import SUPPORTED_EXTENSIONS
from ..errors import ConversionError
from ..library import convert_folder
from ..models import ConversionProgress
from ..settings import get_settings
from ..utils import generate_run_id, megabytes

console = Console()

app = typer.Typer(
    help="Convert a folder of images into a single PDF",
    context_settings={"help_option_names": ["-h", "--help"]},
)

DEFAULT_FOLDER = Path("public")
DEFAULT_OUTPUT = Path("images-collection.pdf")


class OrientationChoice(str, Enum):
    portrait = "portrait"
    landscape = "landscape"


class PageSizeChoice(str, Enum):
    a4 = "a4"
    letter = "letter"
    legal = "legal"


def _load_config(path: Path | None) -> AppConfig:
    settings = get_settings()
    return settings.apply(load_config(path or settings.config_path))


def _print_progress(progress: ConversionProgress) -> None:
    if progress.ok:
        console.print(f"   Processing: {progress.current_label} ({progress.current}/{progress.total})")
    else:
        console.print(
            f"   [yellow]Skipped[/yellow] {progress.current_label} ({progress.current}/{progress.total})"
        )


def _confirm(assume_yes: bool):
    def ask(total: int) -> bool:
        if assume_yes:
            return True
        return typer.confirm(
            f"You're about to process {total} images. This may take a very long time "
            "and use significant memory. Continue?",
            default=False,
        )

    return ask


@app.command()
def convert(
    folder: Path = typer.Argument(DEFAULT_FOLDER, help="Folder containing the images"),
    output: Path = typer.Argument(DEFAULT_OUTPUT, help="PDF file to write"),
    margin: float | None = typer.Option(None, "--margin", min=0, help="Page margin in mm"),
    font_size: float | None = typer.Option(None, "--font-size", min=1, help="Caption font size"),
    quality: float | None = typer.Option(None, "--quality", min=0.1, max=1.0, help="Image quality (0.1-1.0)"),
    orientation: OrientationChoice | None = typer.Option(None, "--orientation", help="Page orientation"),
    page_size: PageSizeChoice | None = typer.Option(None, "--page-size", help="Page size"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask before converting very large batches"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    """Convert every supported image directly inside FOLDER into OUTPUT."""
    cfg = _load_config(config)
    overrides = {
        "margin": margin,
        "font_size": font_size,
        "quality": quality,
        "orientation": orientation.value if orientation else None,
        "page_size": page_size.value if page_size else None,
    }
    console.print(f"Source folder: {folder}")
    console.print(f"Output file: {output}")
    service = ConversionService(cfg)
    try:
        result = convert_folder(
            folder,
            output,
            overrides,
            _print_progress,
            confirm=_confirm(yes),
            service=service,
        )
    except ConversionError as exc:
        console.print(f"[red]Conversion failed[/red]: {exc.code} - {exc}")
        if exc.code == "NO_IMAGES":
            console.print(f"   Supported formats: {', '.join(cfg.allowed_extensions)}")
        raise typer.Exit(1) from exc

    table = Table(title="Summary")
    table.add_column("Images processed")
    table.add_column("Skipped")
    table.add_column("Filtered out")
    table.add_column("Output file")
    table.add_column("File size")
    table.add_row(
        str(result.page_count),
        str(result.summary.failures),
        str(result.filtered_out),
        str(result.output_path),
        f"{megabytes(result.size_bytes):.2f} MB",
    )
    console.print(table)
    for warning in result.warnings:
        console.print(f"[yellow]Warning[/yellow]: {warning}")
    console.print("[green]Conversion completed![/green]")


@app.command()
def formats() -> None:
    """List the supported image extensions."""
    console.print(", ".join(SUPPORTED_EXTENSIONS))


@app.command()
def show_config(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    """Print the effective configuration as JSON."""
    console.print_json(dump_config(_load_config(config)))


@app.command()
def serve(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    """Run the HTTP service (requires enable_local_api)."""
    import uvicorn

    from ..api import create_app

    cfg = _load_config(config)
    try:
        application = create_app(config=cfg)
    except RuntimeError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc
    uvicorn.run(application, host=cfg.api.host, port=cfg.api.port)


@app.command()
def new_run_id() -> None:
    console.print(generate_run_id())


if __name__ == "__main__":
    app()
